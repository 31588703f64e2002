"""
ECharts options builder for the Flowmap canvas.

Converts the output of graph_projection.project() into ECharts graph-series
options for ui.echart(), and parses the click payloads ECharts sends back.

Coordinates: projection positions are top-left corners, and a parented
step's position is relative to its section. ECharts places symbols by their
center in absolute data coordinates, so both conversions happen here.
"""

from typing import Any, Dict, List, Optional, Tuple

from flowmap.constants import STATUS_COLORS, STEP_NODE_WIDTH, STEP_NODE_HEIGHT
from flowmap.graph_projection import parse_node_id, parse_edge_id

# Event keys we request from ECharts click events
REQUESTED_EVENT_KEYS = ['componentType', 'name', 'dataType', 'seriesType', 'value']

BACKGROUND_COLOR = '#18181b'
SECTION_FILL = 'rgba(63, 63, 70, 0.35)'
SECTION_BORDER = '#52525b'
SELECTED_BORDER = '#a78bfa'
EDGE_COLOR = '#71717a'


def _absolute_origin(node: Dict[str, Any], nodes_by_id: Dict[str, Dict[str, Any]]) -> Tuple[float, float]:
    x = node['position']['x']
    y = node['position']['y']
    parent = nodes_by_id.get(node.get('parent_id') or '')
    if parent is not None:
        x += parent['position']['x']
        y += parent['position']['y']
    return x, y


def _node_size(node: Dict[str, Any]) -> Tuple[float, float]:
    if node['type'] == 'section':
        style = node.get('style') or {}
        return style.get('width', 0.0), style.get('height', 0.0)
    return STEP_NODE_WIDTH, STEP_NODE_HEIGHT


def _section_item(node: Dict[str, Any], x: float, y: float, w: float, h: float) -> Dict[str, Any]:
    selected = node.get('selected', False)
    return {
        'id': node['id'],
        'name': node['id'],
        'value': node['data'].get('name', ''),
        'x': x + w / 2,
        'y': y + h / 2,
        'symbol': 'rect',
        'symbolSize': [w, h],
        'z': 1,
        'itemStyle': {
            'color': SECTION_FILL,
            'borderColor': SELECTED_BORDER if selected else SECTION_BORDER,
            'borderWidth': 2 if selected else 1,
            'borderType': 'dashed',
        },
        'label': {
            'show': True,
            'formatter': node['data'].get('name', ''),
            'position': 'insideTopLeft',
            'color': '#a1a1aa',
            'fontSize': 12,
            'fontWeight': 'bold',
        },
        'tooltip': {'show': False},
    }


def _step_item(node: Dict[str, Any], x: float, y: float, w: float, h: float) -> Dict[str, Any]:
    data = node['data']
    selected = node.get('selected', False)
    color = STATUS_COLORS.get(data.get('status'), STATUS_COLORS['draft'])
    tooltip_text = f"{data.get('name', '')}<br/><span style='color:#999;font-size:11px'>{data.get('status_label', '')}</span>"
    return {
        'id': node['id'],
        'name': node['id'],
        'value': data.get('name', ''),
        'x': x + w / 2,
        'y': y + h / 2,
        'symbol': 'roundRect',
        'symbolSize': [w, h],
        'z': 2,
        'itemStyle': {
            'color': '#27272a',
            'borderColor': SELECTED_BORDER if selected else color,
            'borderWidth': 3 if selected else 2,
        },
        'label': {
            'show': True,
            'formatter': data.get('name', ''),
            'position': 'inside',
            'color': '#fafafa',
            'fontSize': 13,
        },
        'tooltip': {'formatter': tooltip_text},
    }


def build_echart_options(nodes: List[Dict[str, Any]], edges: List[Dict[str, Any]],
                         viewport: Optional[Dict[str, float]] = None) -> Dict[str, Any]:
    """
    Build ECharts options from projected nodes and edges.

    Args:
        nodes: Node dicts from graph_projection.project() (sections first)
        edges: Edge dicts from graph_projection.project()
        viewport: Saved tab viewport {x, y, zoom}; x/y is the view center

    Returns:
        ECharts options dict ready for ui.echart()
    """
    nodes_by_id = {n['id']: n for n in nodes}

    e_nodes = []
    for n in nodes:
        x, y = _absolute_origin(n, nodes_by_id)
        w, h = _node_size(n)
        if n['type'] == 'section':
            e_nodes.append(_section_item(n, x, y, w, h))
        else:
            e_nodes.append(_step_item(n, x, y, w, h))

    e_links = []
    for e in edges:
        e_links.append({
            'id': e['id'],
            'name': e['id'],
            'source': e['source'],
            'target': e['target'],
            'symbol': ['none', 'arrow'],
            'symbolSize': 10,
            'lineStyle': {'color': EDGE_COLOR, 'width': 2, 'curveness': 0, 'opacity': 1.0},
            'tooltip': {'show': False},
        })

    series = {
        'type': 'graph',
        'layout': 'none',
        'roam': True,
        'draggable': True,
        'edgeSymbol': ['none', 'arrow'],
        'data': e_nodes,
        'links': e_links,
    }
    if viewport:
        series['center'] = [viewport['x'], viewport['y']]
        series['zoom'] = viewport['zoom']

    return {
        'backgroundColor': BACKGROUND_COLOR,
        'tooltip': {},
        'animation': True,
        'animationDurationUpdate': 0,  # Prevent animated repositioning on updates
        'series': [series],
    }


def normalize_click_payload(raw_payload: Any) -> Dict[str, Any]:
    """Normalize NiceGUI chart click payloads into a dictionary for easier parsing."""
    if isinstance(raw_payload, dict):
        return raw_payload
    if isinstance(raw_payload, (list, tuple)):
        return {
            REQUESTED_EVENT_KEYS[i]: raw_payload[i]
            for i in range(min(len(raw_payload), len(REQUESTED_EVENT_KEYS)))
        }
    if isinstance(raw_payload, str):
        return {'name': raw_payload}
    return {}


def resolve_click(payload: Dict[str, Any]) -> Tuple[str, Optional[str]]:
    """
    Classify a normalized click payload.

    Returns ('node', node_id), ('edge', edge_id) or ('pane', None).
    """
    if not isinstance(payload, dict) or payload.get('componentType') != 'series':
        return 'pane', None
    name = payload.get('name')
    if not name:
        return 'pane', None
    if payload.get('dataType') == 'edge' or parse_edge_id(name) is not None:
        return 'edge', name
    kind, _ = parse_node_id(name)
    if kind is not None:
        return 'node', name
    return 'pane', None


def drop_position(node: Dict[str, Any], center_x: float, center_y: float,
                  nodes: List[Dict[str, Any]]) -> Tuple[float, float]:
    """
    Turn the symbol center where a node was dropped back into the stored
    position: top-left corner, relative to the parent section for children.
    """
    nodes_by_id = {n['id']: n for n in nodes}
    w, h = _node_size(node)
    x = center_x - w / 2
    y = center_y - h / 2
    parent = nodes_by_id.get(node.get('parent_id') or '')
    if parent is not None:
        x -= parent['position']['x']
        y -= parent['position']['y']
    return x, y


def parse_viewport(raw: Any) -> Optional[Dict[str, float]]:
    """
    Read {x, y, zoom} from the graph series state fetched after a roam
    ({'center': [x, y], 'zoom': z}). Percent-string centers (the ECharts
    default before any pan) and malformed input give None.
    """
    if not isinstance(raw, dict):
        return None
    center = raw.get('center')
    zoom = raw.get('zoom', 1)
    if not isinstance(center, (list, tuple)) or len(center) != 2:
        return None
    try:
        x, y, z = float(center[0]), float(center[1]), float(zoom)
    except (TypeError, ValueError):
        return None
    if z <= 0:
        return None
    return {'x': x, 'y': y, 'zoom': z}

"""
Graph projection: entity collections + selection -> renderable nodes and edges.

The renderer keeps its own copy of nodes/edges. That copy is a cache: it is
rebuilt from project() whenever the store or the selection changes, and is
never edited on its own except for in-progress drag visuals.

Node format (list of dicts, sections first so parents precede children):
  {
    "id": "section-<id>" | "step-<id>",
    "type": "section" | "step",
    "position": {"x": float, "y": float},
    "style": {"width": float, "height": float},      # sections only
    "parent_id": "section-<id>" | None,              # steps only
    "extent": "parent" | None,                       # steps only
    "selected": bool,
    "data": {...}
  }

Edge format:
  {"id": "edge-<id>", "source": "step-<id>", "target": "step-<id>", "type": "default"}
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

import networkx as nx

from flowmap.constants import (
    STEP_PREFIX,
    SECTION_PREFIX,
    EDGE_PREFIX,
    STATUS_LABELS,
    EXECUTOR_ICONS,
    STEP_NODE_WIDTH,
    STEP_NODE_HEIGHT,
)
from flowmap.models import Section, Step, Connection

logger = logging.getLogger(__name__)

_PREFIXES = {'step': STEP_PREFIX, 'section': SECTION_PREFIX}


def node_id_for(kind: str, entity_id: str) -> str:
    return f"{_PREFIXES[kind]}{entity_id}"


def parse_node_id(node_id: str) -> Tuple[Optional[str], Optional[str]]:
    """Split a renderer node id into (kind, entity_id). Unknown ids give (None, None)."""
    if not node_id:
        return None, None
    for kind, prefix in _PREFIXES.items():
        if node_id.startswith(prefix):
            return kind, node_id[len(prefix):]
    return None, None


def edge_id_for(connection_id: str) -> str:
    return f"{EDGE_PREFIX}{connection_id}"


def parse_edge_id(edge_id: str) -> Optional[str]:
    if edge_id and edge_id.startswith(EDGE_PREFIX):
        return edge_id[len(EDGE_PREFIX):]
    return None


def clamp_to_parent(x: float, y: float, parent_width: float, parent_height: float,
                    node_width: float = STEP_NODE_WIDTH,
                    node_height: float = STEP_NODE_HEIGHT) -> Tuple[float, float]:
    """
    Keep a child node inside its parent ("extent: parent").
    Child coordinates are relative to the parent's top-left corner.
    """
    max_x = max(0.0, parent_width - node_width)
    max_y = max(0.0, parent_height - node_height)
    return min(max(x, 0.0), max_x), min(max(y, 0.0), max_y)


def _section_node(section: Section, selected: bool) -> Dict[str, Any]:
    return {
        'id': node_id_for('section', section.id),
        'type': 'section',
        'position': {'x': section.position_x, 'y': section.position_y},
        'style': {'width': section.width, 'height': section.height},
        'selected': selected,
        'data': {
            'section_id': section.id,
            'name': section.name,
            'summary': section.summary,
        },
    }


def _step_node(step: Step, parent_node_id: Optional[str], selected: bool) -> Dict[str, Any]:
    return {
        'id': node_id_for('step', step.id),
        'type': 'step',
        'position': {'x': step.position_x, 'y': step.position_y},
        'parent_id': parent_node_id,
        'extent': 'parent' if parent_node_id else None,
        'selected': selected,
        'data': {
            'step_id': step.id,
            'name': step.name,
            'status': step.status,
            'status_label': STATUS_LABELS.get(step.status, step.status),
            'executor': step.executor,
            'executor_icon': EXECUTOR_ICONS.get(step.executor, ''),
        },
    }


def build_graph(sections: Sequence[Section], steps: Sequence[Step],
                connections: Sequence[Connection],
                selected_step_id: Optional[str] = None,
                selected_section_id: Optional[str] = None) -> nx.MultiDiGraph:
    """
    Build the canvas graph. Node attributes hold the renderer node dict.
    Containment is stored on the step node (parent_id), not as a graph edge;
    graph edges are the process connections only, keyed by connection id so
    two connections between the same pair of steps both survive.
    """
    G = nx.MultiDiGraph()

    for section in sections:
        node = _section_node(section, section.id == selected_section_id)
        G.add_node(node['id'], kind='section', node=node)

    for step in steps:
        parent_node_id = None
        if step.section_id:
            candidate = node_id_for('section', step.section_id)
            if candidate in G.nodes:
                parent_node_id = candidate
            else:
                logger.debug(f"Step {step.id} points at missing section {step.section_id}; rendering unparented")
        node = _step_node(step, parent_node_id, step.id == selected_step_id)
        G.add_node(node['id'], kind='step', node=node)

    for conn in connections:
        src = node_id_for('step', conn.source_step_id)
        tgt = node_id_for('step', conn.target_step_id)
        # Only add edges if both steps exist
        if src in G.nodes and tgt in G.nodes:
            G.add_edge(src, tgt, key=conn.id, edge={
                'id': edge_id_for(conn.id),
                'source': src,
                'target': tgt,
                'type': 'default',
            })
        else:
            logger.debug(f"Skipping connection {conn.id}: endpoint missing")

    return G


def project(sections: Sequence[Section], steps: Sequence[Step],
            connections: Sequence[Connection],
            selected_step_id: Optional[str] = None,
            selected_section_id: Optional[str] = None) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
    """
    Pure projection of the canvas state. Same inputs give the same nodes and
    edges, in the same order, with the same ids.
    """
    G = build_graph(sections, steps, connections, selected_step_id, selected_section_id)
    nodes = [attrs['node'] for _, attrs in G.nodes(data=True)]
    # networkx groups edges by source node; the renderer gets connection order
    edges = []
    for conn in connections:
        key = (node_id_for('step', conn.source_step_id), node_id_for('step', conn.target_step_id), conn.id)
        if G.has_edge(*key):
            edges.append(G.edges[key]['edge'])
    return nodes, edges

from flowmap.models import Section, Step, Connection, Tab


def test_step_from_dict_fills_defaults():
    step = Step.from_dict({'id': 's1', 'workspace_id': 'ws', 'tab_id': 't', 'name': None,
                           'position_x': '12.5', 'position_y': None, 'attributes': None})
    assert step.name == ""
    assert step.position_x == 12.5
    assert step.position_y == 0.0
    assert step.status == "draft"
    assert step.executor == "empty"
    assert step.attributes == {}
    assert step.section_id is None


def test_section_from_dict_default_size():
    section = Section.from_dict({'id': 'x', 'name': 'Intake'})
    assert (section.width, section.height) == (400.0, 300.0)


def test_connection_touches():
    conn = Connection.from_dict({'id': 'c', 'source_step_id': 'a', 'target_step_id': 'b'})
    assert conn.touches('a') and conn.touches('b')
    assert not conn.touches('c')


def test_tab_position_is_int():
    tab = Tab.from_dict({'id': 't', 'name': 'Main', 'position': '3'})
    assert tab.position == 3


def test_to_dict_round_trips_fields():
    step = Step(id='s', workspace_id='ws', tab_id='t', name='N', time_minutes=5)
    assert Step.from_dict(step.to_dict()) == step

import pytest

from elemsplit import (
    AttributeBag,
    EntityCreationFailed,
    InMemoryHost,
    InvalidCutGeometry,
    Layer,
    Level,
    LinearSpan,
    NoSplitNeeded,
    ReassignmentFailed,
    Reference,
    SplitConfig,
    SplitErrorKind,
    SplitOrchestrator,
    SplitState,
)
from elemsplit.geometry import CuttingLine, Loop, PlanarProfile

FULL_RUN = [
    SplitState.VALIDATED,
    SplitState.GEOMETRY_SPLIT,
    SplitState.ENTITIES_CREATED,
    SplitState.ATTRIBUTES_COPIED,
    SplitState.HOSTED_CONTENT_MOVED,
    SplitState.SOURCE_DELETED,
]

CUT_AT_4 = CuttingLine.through((4, -5), (4, 15))


def _floor_scene():
    host = InMemoryHost()
    profile = PlanarProfile(Loop.from_points([(0, 0), (10, 0), (10, 10), (0, 10)]))
    bag = AttributeBag.from_values(
        {"mark": "S-1", "thickness": 0.5, "area": 100.0, "id": 1, "stamp": "ok"},
        read_only=["area", "stamp"],
    )
    slab = host.add_entity("floor", profile, type_ref="Generic 150", level_ref="L1", attributes=bag)
    left = host.add_hosted_item(slab, (1, 1, 0), type_ref="drain", attributes=AttributeBag.from_values({"mark": "D1"}))
    right = host.add_hosted_item(slab, (8, 8, 0), type_ref="drain", attributes=AttributeBag.from_values({"mark": "D2"}))
    return host, slab, left, right


def test_split_floor_end_to_end():
    host, slab, left, right = _floor_scene()
    outcome = SplitOrchestrator(host).split_planar(slab, CUT_AT_4)

    assert outcome.ok
    assert outcome.states == FULL_RUN
    assert slab not in host.entities
    side_a, side_b = (host.entities[handle] for handle in outcome.created)
    assert side_a.geometry.area == pytest.approx(40.0)
    assert side_b.geometry.area == pytest.approx(60.0)
    assert side_a.level_ref == "L1"
    assert side_a.type_ref == "Generic 150"
    for record in (side_a, side_b):
        assert record.kind == "floor"
        assert record.attributes["mark"] == "S-1"
        assert record.attributes["thickness"] == 0.5
        assert record.attributes["id"] is None
    assert side_a.attributes["area"] == pytest.approx(40.0)

    assert left not in host.hosted and right not in host.hosted
    (moved_left,) = outcome.rehosted[left]
    (moved_right,) = outcome.rehosted[right]
    assert host.hosted[moved_left].host == side_a.handle
    assert host.hosted[moved_right].host == side_b.handle
    assert host.hosted[moved_right].attributes["mark"] == "D2"
    assert host.committed == [f"split_planar {slab}"]


def test_read_only_attributes_are_reported_not_copied():
    host, slab, _, _ = _floor_scene()
    outcome = SplitOrchestrator(host).split_planar(slab, CUT_AT_4)
    assert [(diag.name, diag.reason) for diag in outcome.diagnostics] == [("stamp", "read-only")] * 2


def test_tangent_cut_aborts_and_leaves_source_untouched():
    host, slab, left, right = _floor_scene()
    before = dict(host.entities)
    outcome = SplitOrchestrator(host).split_planar(slab, CuttingLine.through((10, -5), (10, 15)))

    assert outcome.state is SplitState.ABORTED
    assert outcome.states == [SplitState.VALIDATED, SplitState.ABORTED]
    assert isinstance(outcome.error, InvalidCutGeometry)
    assert outcome.created == []
    assert set(host.entities) == set(before)
    assert set(host.hosted) == {left, right}
    assert host.rolled_back == [f"split_planar {slab}"]


def test_refused_second_entity_discards_the_first():
    host, slab, left, _ = _floor_scene()
    host.inject_failure("create", after=1)
    outcome = SplitOrchestrator(host).split_planar(slab, CUT_AT_4)

    assert outcome.state is SplitState.ABORTED
    assert isinstance(outcome.error, EntityCreationFailed)
    assert outcome.error.kind is SplitErrorKind.ENTITY_CREATION_FAILED
    assert len(outcome.discarded) == 1
    assert outcome.created == []
    assert list(host.entities) == [slab]
    assert host.hosted[left].host == slab


def test_failed_placement_aborts_by_default():
    host, slab, left, right = _floor_scene()
    host.inject_failure("place", after=1)
    outcome = SplitOrchestrator(host).split_planar(slab, CUT_AT_4)

    assert outcome.state is SplitState.ABORTED
    assert isinstance(outcome.error, ReassignmentFailed)
    assert [failure.item.handle for failure in outcome.reassignment_failures] == [right]
    assert list(host.entities) == [slab]
    assert set(host.hosted) == {left, right}
    assert len(outcome.discarded) == 3


def test_failed_placement_is_reported_when_allowed():
    host, slab, left, right = _floor_scene()
    host.inject_failure("place", after=1)
    config = SplitConfig(abort_on_reassignment_failure=False)
    outcome = SplitOrchestrator(host, config).split_planar(slab, CUT_AT_4)

    assert outcome.ok
    assert [failure.item.handle for failure in outcome.reassignment_failures] == [right]
    assert left not in host.hosted
    assert right in host.hosted
    assert right not in outcome.rehosted


def test_source_deletion_failure_rolls_back():
    host = InMemoryHost()
    pipe = host.add_entity("pipe", LinearSpan((0, 0, 0), (20, 0, 0)))
    host.inject_failure("delete")
    outcome = SplitOrchestrator(host).split_linear(pipe, [10])

    assert outcome.state is SplitState.ABORTED
    assert SplitState.HOSTED_CONTENT_MOVED in outcome.states
    assert isinstance(outcome.error, EntityCreationFailed)
    assert list(host.entities) == [pipe]


def test_unknown_source_aborts():
    outcome = SplitOrchestrator(InMemoryHost()).split_linear(404, [1.0])
    assert outcome.state is SplitState.ABORTED
    assert isinstance(outcome.error, InvalidCutGeometry)


def test_no_station_inside_clearance_leaves_element_unchanged():
    host = InMemoryHost()
    pipe = host.add_entity("pipe", LinearSpan((0, 0, 0), (20, 0, 0)))
    outcome = SplitOrchestrator(host).split_linear(pipe, [0.1, 19.95])

    assert outcome.state is SplitState.UNCHANGED
    assert isinstance(outcome.error, NoSplitNeeded)
    assert not outcome.error.is_failure
    assert not outcome.ok
    assert list(host.entities) == [pipe]


def test_planar_split_of_linear_element_is_rejected():
    host = InMemoryHost()
    pipe = host.add_entity("pipe", LinearSpan((0, 0, 0), (20, 0, 0)))
    outcome = SplitOrchestrator(host).split_planar(pipe, CUT_AT_4)
    assert isinstance(outcome.error, InvalidCutGeometry)
    assert list(host.entities) == [pipe]


def test_framing_extensions_only_on_outer_ends():
    host = InMemoryHost()
    bag = AttributeBag.from_values(
        {"start_extension": 0.25, "end_extension": 0.5, "length": 30.0, "mark": "B1", "reference_level": Reference("L2")},
        read_only=["length"],
    )
    beam = host.add_entity("framing", LinearSpan((0, 0, 10), (30, 0, 10)), attributes=bag)
    outcome = SplitOrchestrator(host).split_linear(beam, [10, 20])

    assert outcome.ok
    pieces = [host.entities[handle].attributes for handle in outcome.created]
    assert [(p["start_extension"], p["end_extension"]) for p in pieces] == [(0.25, 0.0), (0.0, 0.0), (0.0, 0.5)]
    assert [p["length"] for p in pieces] == pytest.approx([10.0, 10.0, 10.0])
    assert all(p["mark"] == "B1" for p in pieces)
    assert all(p["reference_level"] == Reference("L2") for p in pieces)


def test_framing_split_close_to_end_uses_small_clearance():
    host = InMemoryHost()
    beam = host.add_entity("framing", LinearSpan((0, 0, 0), (10, 0, 0)))
    outcome = SplitOrchestrator(host).split_linear_at_point(beam, (9.8, 0, 0))
    assert outcome.ok
    assert host.entities[outcome.created[1]].geometry.length == pytest.approx(0.2)


LEVELS = [Level("L0", 0.0), Level("L1", 10.0), Level("L2", 20.0), Level("L3", 30.0)]


def test_column_split_at_levels_gets_host_levels():
    host = InMemoryHost()
    bag = AttributeBag.from_values(
        {
            "base_level": Reference("L0"),
            "base_offset": 0.0,
            "top_level": Reference("L3"),
            "top_offset": 0.0,
            "mark": "C3",
        }
    )
    column = host.add_entity("column", LinearSpan((5, 5, 0), (5, 5, 30)), level_ref="L0", attributes=bag)
    outcome = SplitOrchestrator(host).split_linear_at_levels(column, LEVELS)

    assert outcome.ok
    records = [host.entities[handle] for handle in outcome.created]
    assert [record.level_ref for record in records] == ["L0", "L1", "L2"]
    assert [record.attributes["base_level"] for record in records] == [Reference("L0"), Reference("L1"), Reference("L2")]
    assert [record.attributes["top_level"] for record in records] == [Reference("L1"), Reference("L2"), Reference("L3")]
    assert [record.attributes["base_offset"] for record in records] == pytest.approx([0.0, 0.0, 0.0])
    assert all(record.attributes["mark"] == "C3" for record in records)


def test_column_with_offsets_between_levels():
    host = InMemoryHost()
    column = host.add_entity("column", LinearSpan((0, 0, 2), (0, 0, 25)))
    outcome = SplitOrchestrator(host).split_linear_at_levels(column, LEVELS)

    assert outcome.ok
    records = [host.entities[handle] for handle in outcome.created]
    assert [round(r.geometry.length, 6) for r in records] == [8.0, 10.0, 5.0]
    last = records[-1].attributes
    assert last["base_level"] == Reference("L2")
    assert last["top_level"] == Reference("L2")
    assert last["top_offset"] == pytest.approx(5.0)
    assert records[0].attributes["base_offset"] == pytest.approx(2.0)


def test_sloped_column_cannot_be_split():
    host = InMemoryHost()
    column = host.add_entity("column", LinearSpan((0, 0, 0), (10, 0, 3)))
    outcome = SplitOrchestrator(host).split_linear(column, [5])
    assert isinstance(outcome.error, InvalidCutGeometry)


def test_pipe_companions_are_replicated_and_fittings_moved():
    host = InMemoryHost()
    pipe = host.add_entity("pipe", LinearSpan((0, 0, 0), (20, 0, 0)), attributes=AttributeBag.from_values({"system": "CW"}))
    insulation = host.add_hosted_item(pipe, (10, 0, 0), type_ref="insulation", spans_host=True)
    valve = host.add_hosted_item(pipe, (15, 0, 0), type_ref="valve")
    outcome = SplitOrchestrator(host).split_linear_at_point(pipe, (8, 1, 0))

    assert outcome.ok
    first, second = outcome.created
    assert sorted(host.hosted[h].host for h in outcome.rehosted[insulation]) == [first, second]
    assert host.hosted[outcome.rehosted[insulation][0]].anchor == pytest.approx((4.0, 0.0, 0.0))
    (moved_valve,) = outcome.rehosted[valve]
    assert host.hosted[moved_valve].host == second
    assert insulation not in host.hosted and valve not in host.hosted
    assert all(host.entities[h].attributes["system"] == "CW" for h in outcome.created)


def test_vertical_pipe_split_at_levels_writes_reference_level():
    host = InMemoryHost()
    bag = AttributeBag.from_values({"reference_level": Reference("L0"), "offset": 1.0})
    riser = host.add_entity("pipe", LinearSpan((0, 0, 1), (0, 0, 29)), attributes=bag)
    outcome = SplitOrchestrator(host).split_linear_at_levels(riser, LEVELS)

    assert outcome.ok
    records = [host.entities[handle].attributes for handle in outcome.created]
    assert [r["reference_level"] for r in records] == [Reference("L0"), Reference("L1"), Reference("L2")]
    assert [r["offset"] for r in records] == pytest.approx([1.0, 0.0, 0.0])


def test_wall_split_by_model_line_moves_doors():
    host = InMemoryHost()
    wall = host.add_entity("wall", LinearSpan((0, 0, 0), (20, 0, 0)), attributes=AttributeBag.from_values({"mark": "W1"}))
    door = host.add_hosted_item(wall, (12, 0, 0), type_ref="door")
    outcome = SplitOrchestrator(host).split_linear_at_cut(wall, CuttingLine.through((5, -3), (5, 3)))

    assert outcome.ok
    lengths = [host.entities[h].geometry.length for h in outcome.created]
    assert lengths == pytest.approx([5.0, 15.0])
    (moved,) = outcome.rehosted[door]
    assert host.hosted[moved].host == outcome.created[1]


def test_outcome_summary_is_json_friendly():
    host, slab, _, _ = _floor_scene()
    summary = SplitOrchestrator(host).split_planar(slab, CUT_AT_4).summary()
    assert summary["state"] == "source-deleted"
    assert summary["error"] is None
    assert len(summary["created"]) == 2
    assert summary["diagnostics"][0] == {"name": "stamp", "reason": "read-only", "detail": ""}


def test_refused_attributes_on_moved_item_roll_back():
    host, slab, left, right = _floor_scene()
    host.inject_failure("apply", after=2)
    outcome = SplitOrchestrator(host).split_planar(slab, CUT_AT_4)

    assert outcome.state is SplitState.ABORTED
    assert isinstance(outcome.error, ReassignmentFailed)
    assert [failure.item.handle for failure in outcome.reassignment_failures] == [left]
    assert len(outcome.discarded) == 4
    assert outcome.rehosted == {}
    assert list(host.entities) == [slab]
    assert set(host.hosted) == {left, right}
    assert host.rolled_back == [f"split_planar {slab}"]


def test_refused_attributes_leave_original_when_allowed():
    host, slab, left, right = _floor_scene()
    host.inject_failure("apply", after=2)
    config = SplitConfig(abort_on_reassignment_failure=False)
    outcome = SplitOrchestrator(host, config).split_planar(slab, CUT_AT_4)

    assert outcome.ok
    assert left in host.hosted and right not in host.hosted
    assert left not in outcome.rehosted
    (partial_copy,) = outcome.discarded
    assert partial_copy not in host.hosted
    (moved_right,) = outcome.rehosted[right]
    assert sorted(host.hosted) == sorted([left, moved_right])


def test_companion_missing_from_a_piece_is_not_duplicated():
    host = InMemoryHost()
    pipe = host.add_entity("pipe", LinearSpan((0, 0, 0), (20, 0, 0)))
    insulation = host.add_hosted_item(pipe, (10, 0, 0), type_ref="insulation", spans_host=True)
    host.inject_failure("place", after=1)
    config = SplitConfig(abort_on_reassignment_failure=False)
    outcome = SplitOrchestrator(host, config).split_linear(pipe, [10])

    assert outcome.ok
    assert list(host.hosted) == [insulation]
    assert insulation not in outcome.rehosted
    assert len(outcome.discarded) == 1


def _wall(host, values, **kwargs):
    return host.add_entity(
        "wall", LinearSpan((0, 0, 0), (20, 0, 0)), attributes=AttributeBag.from_values(values), **kwargs
    )


def test_wall_split_by_levels_stacks_pieces_and_moves_openings_by_elevation():
    host = InMemoryHost()
    wall = _wall(
        host,
        {
            "base_level": Reference("L0"),
            "base_offset": 0.0,
            "top_level": Reference("L2"),
            "top_offset": 5.0,
            "mark": "W1",
        },
        level_ref="L0",
    )
    door = host.add_hosted_item(wall, (5, 0, 0), type_ref="door")
    window = host.add_hosted_item(wall, (12, 0, 14), type_ref="window")
    outcome = SplitOrchestrator(host).split_linear_at_levels(wall, LEVELS)

    assert outcome.ok
    records = [host.entities[handle] for handle in outcome.created]
    assert [record.geometry.start[2] for record in records] == pytest.approx([0.0, 10.0, 20.0])
    assert [record.geometry.length for record in records] == pytest.approx([20.0, 20.0, 20.0])
    assert [record.level_ref for record in records] == ["L0", "L1", "L2"]
    assert [record.attributes["base_level"] for record in records] == [Reference("L0"), Reference("L1"), Reference("L2")]
    assert [record.attributes["top_level"] for record in records] == [Reference("L1"), Reference("L2"), Reference("L2")]
    assert [record.attributes["top_offset"] for record in records] == pytest.approx([0.0, 0.0, 5.0])
    assert all(record.attributes["mark"] == "W1" for record in records)
    (moved_door,) = outcome.rehosted[door]
    (moved_window,) = outcome.rehosted[window]
    assert host.hosted[moved_door].host == outcome.created[0]
    assert host.hosted[moved_window].host == outcome.created[1]


def test_wall_with_unconnected_height_is_cut_at_levels_inside_it():
    host = InMemoryHost()
    wall = _wall(host, {"base_level": Reference("L0"), "base_offset": 2.0, "unconnected_height": 15.0})
    outcome = SplitOrchestrator(host).split_linear_at_levels(wall, LEVELS)

    assert outcome.ok
    records = [host.entities[handle].attributes for handle in outcome.created]
    assert [record["unconnected_height"] for record in records] == pytest.approx([8.0, 7.0])
    assert [record["base_offset"] for record in records] == pytest.approx([2.0, 0.0])
    assert [record["top_level"] for record in records] == [Reference("L1"), Reference("L1")]
    assert [record["top_offset"] for record in records] == pytest.approx([0.0, 7.0])


def test_wall_without_height_cannot_be_split_at_levels():
    host = InMemoryHost()
    wall = _wall(host, {"mark": "W2"})
    outcome = SplitOrchestrator(host).split_linear_at_levels(wall, LEVELS)

    assert outcome.state is SplitState.ABORTED
    assert isinstance(outcome.error, InvalidCutGeometry)
    assert list(host.entities) == [wall]


def test_wall_plan_split_keeps_level_constraints():
    host = InMemoryHost()
    values = {"base_level": Reference("L0"), "top_level": Reference("L2"), "top_offset": 1.5}
    wall = _wall(host, values)
    outcome = SplitOrchestrator(host).split_linear(wall, [8], levels=LEVELS)

    assert outcome.ok
    for handle in outcome.created:
        attributes = host.entities[handle].attributes
        assert attributes["top_level"] == Reference("L2")
        assert attributes["top_offset"] == 1.5


def _layered_floor(host, layers):
    profile = PlanarProfile(Loop.from_points([(0, 0), (10, 0), (10, 10), (0, 10)]))
    bag = AttributeBag.from_values(
        {"mark": "F1", "height_offset": 0.0, "fire_rating": "2h", "area": 100.0}, read_only=["area"]
    )
    return host.add_entity("floor", profile, type_ref="Composite", level_ref="L1", attributes=bag, layers=layers)


def test_floor_layers_become_separate_floors():
    host = InMemoryHost()
    layers = [Layer(0.02, "Tile"), Layer(0.15, "Concrete", type_ref="Slab 150"), Layer(0.05, "Screed", variable=True)]
    slab = _layered_floor(host, layers)
    drain = host.add_hosted_item(slab, (2, 2, 0), type_ref="drain")
    outcome = SplitOrchestrator(host).split_layers(slab)

    assert outcome.ok
    assert outcome.skipped_layers == [2]
    assert slab not in host.entities
    records = [host.entities[handle] for handle in outcome.created]
    assert [record.type_ref for record in records] == ["Composite_Layer_1_Tile", "Slab 150"]
    assert [record.attributes["height_offset"] for record in records] == pytest.approx([0.0, -0.02])
    assert all(record.attributes["mark"] is None for record in records)
    assert all(record.attributes["fire_rating"] == "2h" for record in records)
    assert all(record.level_ref == "L1" for record in records)
    (moved,) = outcome.rehosted[drain]
    assert host.hosted[moved].host == outcome.created[0]


def test_wall_layers_are_offset_across_the_location_line():
    host = InMemoryHost()
    wall = _wall(host, {"base_level": Reference("L0"), "mark": "W3"}, layers=[Layer(0.1, "Brick"), Layer(0.2, "Block")])
    outcome = SplitOrchestrator(host).split_layers(wall)

    assert outcome.ok
    records = [host.entities[handle] for handle in outcome.created]
    assert [record.geometry.start[1] for record in records] == pytest.approx([0.1, -0.05])
    assert [record.geometry.length for record in records] == pytest.approx([20.0, 20.0])
    assert all(record.attributes["base_level"] == Reference("L0") for record in records)


def test_single_layer_floor_is_left_unchanged():
    host = InMemoryHost()
    slab = _layered_floor(host, [Layer(0.2, "Concrete")])
    outcome = SplitOrchestrator(host).split_layers(slab)

    assert outcome.state is SplitState.UNCHANGED
    assert isinstance(outcome.error, NoSplitNeeded)
    assert list(host.entities) == [slab]


def test_refused_layer_rolls_back_the_separation():
    host = InMemoryHost()
    slab = _layered_floor(host, [Layer(0.02, "Tile"), Layer(0.15, "Concrete"), Layer(0.05, "Screed")])
    host.inject_failure("create", after=1)
    outcome = SplitOrchestrator(host).split_layers(slab)

    assert outcome.state is SplitState.ABORTED
    assert isinstance(outcome.error, EntityCreationFailed)
    assert len(outcome.discarded) == 1
    assert list(host.entities) == [slab]


def test_pipes_have_no_layers_to_separate():
    host = InMemoryHost()
    pipe = host.add_entity("pipe", LinearSpan((0, 0, 0), (20, 0, 0)))
    outcome = SplitOrchestrator(host).split_layers(pipe)
    assert outcome.state is SplitState.ABORTED
    assert isinstance(outcome.error, InvalidCutGeometry)

"""Example pipeline: split a slab with an opening and move its floor drains."""

from elemsplit import AttributeBag, InMemoryHost, SplitOrchestrator
from elemsplit.geometry import CuttingLine, Loop, PlanarProfile


def main() -> None:
    host = InMemoryHost()
    slab = host.add_entity(
        "floor",
        PlanarProfile(
            Loop.from_points([(0, 0), (12, 0), (12, 8), (0, 8)]),
            [Loop.from_points([(5, 3), (7, 3), (7, 5), (5, 5)])],
        ),
        type_ref="Generic 200",
        level_ref="Level 1",
        attributes=AttributeBag.from_values({"mark": "S-01", "area": 92.0}, read_only=["area"]),
    )
    host.add_hosted_item(slab, (2, 2, 0), type_ref="floor drain")
    host.add_hosted_item(slab, (10, 6, 0), type_ref="floor drain")

    outcome = SplitOrchestrator(host).split_planar(slab, CuttingLine.through((6, -1), (6, 9)))
    print("State:", outcome.state.value)
    for handle in outcome.created:
        record = host.entities[handle]
        print(f"  floor {handle}: area={record.geometry.area:.2f} holes={record.geometry.hole_count}")
    for old, new in outcome.rehosted.items():
        print(f"  drain {old} -> {new}")


if __name__ == "__main__":
    main()

"""Example pipeline: split an insulated riser at every level it passes."""

from elemsplit import AttributeBag, InMemoryHost, Level, LinearSpan, Reference, SplitOrchestrator

LEVELS = [Level("L1", 0.0, "Level 1"), Level("L2", 12.0, "Level 2"), Level("L3", 24.0, "Level 3")]


def main() -> None:
    host = InMemoryHost()
    riser = host.add_entity(
        "pipe",
        LinearSpan((3, 3, 1), (3, 3, 35), section={"diameter": 0.333}),
        attributes=AttributeBag.from_values(
            {"system": "Domestic Cold Water", "reference_level": Reference("L1"), "offset": 1.0}
        ),
    )
    host.add_hosted_item(riser, (3, 3, 18), type_ref="insulation", spans_host=True)

    outcome = SplitOrchestrator(host).split_linear_at_levels(riser, LEVELS)
    print("State:", outcome.state.value)
    for handle in outcome.created:
        record = host.entities[handle]
        bag = record.attributes
        print(
            f"  pipe {handle}: z={record.geometry.start[2]:.1f}..{record.geometry.end[2]:.1f} "
            f"level={bag['reference_level'].id} offset={bag['offset']:.1f}"
        )
    print("Insulation copies:", outcome.rehosted)


if __name__ == "__main__":
    main()

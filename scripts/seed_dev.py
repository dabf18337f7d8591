from luckydraw.db.engine import get_sessionmaker, make_engine
from luckydraw.db.utils import dt_iso
from luckydraw.models import Base
from luckydraw.statistics import get_event_statistics
from luckydraw.stores import MappingPhotoLookup, PhotoDisplayInfo
from luckydraw.workflows import (
    create_configuration,
    create_entry,
    create_manual_entries,
    execute_draw,
    list_winners,
)

EVENT_ID = "demo-event"


def main() -> None:
    """Reset the development database and run a demo draw on sample data."""
    engine = make_engine()
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    Session = get_sessionmaker(engine)

    photos = MappingPhotoLookup(
        {
            f"photo-{i:02d}": PhotoDisplayInfo(
                name=f"Guest {i:02d}",
                image_url=f"https://example.com/photos/{i:02d}.jpg",
            )
            for i in range(1, 13)
        }
    )

    with Session.begin() as session:
        configuration = create_configuration(
            session,
            EVENT_ID,
            [
                {"tier": "consolation", "name": "Tote bag", "count": 3},
                {"tier": "grand", "name": "Weekend trip", "count": 1,
                 "description": "Two nights for two"},
                {"tier": "first", "name": "Camera", "count": 2},
            ],
            max_entries_per_user=2,
            prevent_duplicate_winners=True,
            created_by="seed",
        )

        # Photo-based entries; guest 12 submits twice.
        for i in range(1, 13):
            create_entry(session, EVENT_ID, f"fp-{i:02d}", photo_id=f"photo-{i:02d}")
        create_entry(session, EVENT_ID, "fp-12", photo_id="photo-12")
        create_manual_entries(session, EVENT_ID, "Walk-in Visitor", entry_count=2)

        execution = execute_draw(session, configuration.id, photo_lookup=photos)
        print("Statistics:", execution.statistics)

    with Session() as session:
        for winner in list_winners(session, EVENT_ID):
            print(
                f"#{winner.selection_order} {winner.prize_tier:<12} "
                f"{winner.prize_name:<14} {winner.participant_name:<16} "
                f"{dt_iso(winner.drawn_at)}"
            )
        print(get_event_statistics(session, EVENT_ID))

    engine.dispose()


if __name__ == "__main__":
    main()

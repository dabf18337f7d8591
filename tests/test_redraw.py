from __future__ import annotations

import unittest

from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker

from luckydraw.errors import (
    ConfigNotFound,
    NoEligibleEntriesForRedraw,
    PrizeTierNotFound,
    WinnerAlreadyReplaced,
    WinnerNotFound,
)
from luckydraw.models import Base, Entry, Winner
from luckydraw.stores import (
    EntryStore,
    MappingPhotoLookup,
    PhotoDisplayInfo,
    WinnerStore,
)
from luckydraw.testing import ScriptedRandomSource, SeededRandomSource
from luckydraw.workflows import (
    create_configuration,
    create_entry,
    execute_draw,
    list_winners,
    redraw_prize_tier,
)

EVENT = "event-redraw"


class KeepOrderSource:
    def randbelow(self, upper: int) -> int:
        return upper - 1


class RedrawTests(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
        Base.metadata.create_all(self.engine)
        self.Session = sessionmaker(
            bind=self.engine, future=True, expire_on_commit=False
        )

    def tearDown(self) -> None:
        self.engine.dispose()

    def _late_entry(self, session, config, identity: str, **kwargs) -> Entry:
        # The configuration is completed, so entries are added below the workflow layer.
        return EntryStore(session).create(
            Entry(
                event_id=config.event_id,
                config_id=config.id,
                participant_identity=identity,
                **kwargs,
            )
        )

    def _draw(self, session, entry_count: int, event: str = EVENT):
        config = create_configuration(
            session,
            event,
            [
                {"tier": "grand", "name": "Trip", "count": 1, "description": "Paris"},
                {"tier": "first", "name": "Camera", "count": 2},
            ],
        )
        entries = [
            create_entry(session, event, f"fp-{i}", participant_name=f"P{i}")
            for i in range(entry_count)
        ]
        execution = execute_draw(session, config.id, random_source=KeepOrderSource())
        return config, entries, execution

    def _grand(self, execution) -> Winner:
        return next(w for w in execution.winners if w.prize_tier == "grand")

    def test_replacing_grand_winner_with_remaining_entry(self) -> None:
        with self.Session.begin() as session:
            config, entries, execution = self._draw(session, 4)
            old = self._grand(execution)
            self.assertEqual(old.entry_id, entries[0].id)

            # Pool is [old grand entry, entries[3]]; a zero draw swaps them.
            result = redraw_prize_tier(
                session,
                EVENT,
                config.id,
                "grand",
                previous_winner_id=old.id,
                reason="No show",
                random_source=ScriptedRandomSource([0]),
            )

            self.assertIs(result.previous_winner, old)
            self.assertEqual(result.new_winner.entry_id, entries[3].id)
            self.assertEqual(result.new_winner.prize_tier, "grand")
            self.assertEqual(result.new_winner.prize_name, "Trip")
            self.assertEqual(result.new_winner.prize_description, "Paris [REDRAW: No show]")
            self.assertTrue(result.new_winner.is_redraw)
            self.assertEqual(result.new_winner.selection_order, 4)

            self.assertIsNotNone(old.replaced_at)
            self.assertFalse(old.is_standing)
            self.assertEqual(old.replacement_reason, "No show")
            self.assertIn("[REPLACED: No show]", old.prize_description)
            self.assertFalse(entries[0].is_winner)
            self.assertIsNone(entries[0].prize_tier)
            self.assertTrue(entries[3].is_winner)
            self.assertEqual(entries[3].prize_tier, "grand")

            # Audit trail keeps both records.
            self.assertEqual(len(list_winners(session, EVENT)), 4)
            self.assertEqual(len(list_winners(session, EVENT, standing_only=True)), 3)
            self.assertEqual(config.status, "completed")

    def test_new_winner_never_duplicates_a_standing_identity(self) -> None:
        for seed in ("x", "y", "z"):
            with self.subTest(seed=seed), self.Session.begin() as session:
                event = f"{EVENT}-{seed}"
                config, entries, execution = self._draw(session, 8, event=event)
                # Give a standing winner a second, non-winning entry.
                standing = next(w for w in execution.winners if w.prize_tier == "first")
                extra = self._late_entry(
                    session, config, standing.entry.participant_identity
                )
                self.assertFalse(extra.is_winner)

                result = redraw_prize_tier(
                    session,
                    event,
                    config.id,
                    "first",
                    random_source=SeededRandomSource(seed),
                )

                self.assertNotEqual(result.new_winner.entry_id, extra.id)
                standing_identities = {
                    w.entry.participant_identity
                    for w in list_winners(session, event, standing_only=True)
                    if w.id != result.new_winner.id
                }
                self.assertNotIn(
                    result.new_winner.entry.participant_identity, standing_identities
                )
                self.assertIsNone(result.previous_winner)

    def test_selection_order_is_monotonic_across_redraws(self) -> None:
        with self.Session.begin() as session:
            config, _, execution = self._draw(session, 10)
            previous = self._grand(execution)
            orders = [w.selection_order for w in list_winners(session, EVENT)]
            for attempt in range(3):
                result = redraw_prize_tier(
                    session,
                    EVENT,
                    config.id,
                    "grand",
                    previous_winner_id=previous.id,
                    random_source=SeededRandomSource(f"r{attempt}"),
                )
                self.assertGreater(result.new_winner.selection_order, max(orders))
                orders.append(result.new_winner.selection_order)
                previous = result.new_winner
            self.assertEqual(orders, sorted(orders))
            self.assertEqual(len(set(orders)), len(orders))

    def test_default_reason_and_plain_redraw_marker(self) -> None:
        with self.Session.begin() as session:
            config, _, execution = self._draw(session, 5)
            old = next(w for w in execution.winners if w.prize_tier == "first")

            result = redraw_prize_tier(
                session, EVENT, config.id, "first", previous_winner_id=old.id
            )

            self.assertEqual(old.replacement_reason, "Winner unavailable")
            self.assertEqual(result.new_winner.prize_description, "[REDRAW]")

    def test_unknown_tier(self) -> None:
        with self.Session.begin() as session:
            config, _, _ = self._draw(session, 4)
            with self.assertRaises(PrizeTierNotFound):
                redraw_prize_tier(session, EVENT, config.id, "consolation")
            with self.assertRaises(PrizeTierNotFound):
                redraw_prize_tier(session, EVENT, config.id, "platinum")

    def test_configuration_must_belong_to_event(self) -> None:
        with self.Session.begin() as session:
            config, _, _ = self._draw(session, 4)
            with self.assertRaises(ConfigNotFound):
                redraw_prize_tier(session, "other-event", config.id, "grand")
            with self.assertRaises(ConfigNotFound):
                redraw_prize_tier(session, EVENT, 4242, "grand")

    def test_exhausted_pool(self) -> None:
        with self.Session.begin() as session:
            config, _, _ = self._draw(session, 3)
            with self.assertRaises(NoEligibleEntriesForRedraw):
                redraw_prize_tier(session, EVENT, config.id, "first")
            self.assertEqual(len(list_winners(session, EVENT)), 3)

    def test_previous_winner_must_exist_and_be_standing(self) -> None:
        with self.Session.begin() as session:
            config, _, execution = self._draw(session, 6)
            old = self._grand(execution)

            with self.assertRaises(WinnerNotFound):
                redraw_prize_tier(
                    session, EVENT, config.id, "grand", previous_winner_id=9999
                )

            redraw_prize_tier(session, EVENT, config.id, "grand", previous_winner_id=old.id)
            with self.assertRaises(WinnerAlreadyReplaced):
                redraw_prize_tier(
                    session, EVENT, config.id, "grand", previous_winner_id=old.id
                )
            standing_grand = [
                w
                for w in list_winners(session, EVENT, standing_only=True)
                if w.prize_tier == "grand"
            ]
            self.assertEqual(len(standing_grand), 1)

    def test_redraw_resolves_photo_display_fields(self) -> None:
        photos = MappingPhotoLookup(
            {"ph": PhotoDisplayInfo(name="Photo Name", image_url="https://img/ph.jpg")}
        )
        with self.Session.begin() as session:
            config, _, _ = self._draw(session, 3)
            extra = self._late_entry(session, config, "fp-photo", photo_id="ph")

            result = redraw_prize_tier(
                session, EVENT, config.id, "first", photo_lookup=photos
            )

            self.assertEqual(result.new_winner.entry_id, extra.id)
            self.assertEqual(result.new_winner.participant_name, "Photo Name")
            self.assertEqual(result.new_winner.display_image_url, "https://img/ph.jpg")

    def test_entry_name_takes_precedence_over_photo_name(self) -> None:
        photos = MappingPhotoLookup(
            {"ph": PhotoDisplayInfo(name="Photo Name", image_url="https://img/ph.jpg")}
        )
        with self.Session.begin() as session:
            config, _, _ = self._draw(session, 3)
            self._late_entry(
                session, config, "fp-desk", photo_id="ph", participant_name="Desk Name"
            )

            result = redraw_prize_tier(
                session, EVENT, config.id, "first", photo_lookup=photos
            )

            self.assertEqual(result.new_winner.participant_name, "Desk Name")
            self.assertEqual(result.new_winner.display_image_url, "https://img/ph.jpg")

    def _double_win(self, session, event: str):
        # One participant takes both tiers and keeps a third, losing entry.
        config = create_configuration(
            session,
            event,
            [
                {"tier": "grand", "name": "Trip", "count": 1},
                {"tier": "first", "name": "Camera", "count": 1},
            ],
            max_entries_per_user=3,
            prevent_duplicate_winners=False,
        )
        entries = [create_entry(session, event, "x") for _ in range(3)]
        execution = execute_draw(session, config.id, random_source=KeepOrderSource())
        return config, entries, self._grand(execution)

    def test_participant_with_another_standing_award_is_not_redrawn(self) -> None:
        for values in ([0], [1], [2], [7]):
            with self.subTest(values=values), self.Session.begin() as session:
                event = f"{EVENT}-double-{values[0]}"
                config, entries, grand = self._double_win(session, event)
                other = self._late_entry(session, config, "y")

                result = redraw_prize_tier(
                    session,
                    event,
                    config.id,
                    "grand",
                    previous_winner_id=grand.id,
                    random_source=ScriptedRandomSource(values),
                )

                self.assertEqual(result.new_winner.entry_id, other.id)
                self.assertEqual(result.new_winner.entry.participant_identity, "y")
                self.assertFalse(entries[0].is_winner)
                self.assertFalse(entries[2].is_winner)

    def test_exhausted_pool_leaves_previous_winner_untouched(self) -> None:
        with self.Session.begin() as session:
            config, entries, grand = self._double_win(session, EVENT)

            with self.assertRaises(NoEligibleEntriesForRedraw):
                redraw_prize_tier(
                    session,
                    EVENT,
                    config.id,
                    "grand",
                    previous_winner_id=grand.id,
                    reason="No show",
                )

            session.flush()
            self.assertTrue(grand.is_standing)
            self.assertIsNone(grand.replacement_reason)
            self.assertEqual(grand.prize_description, "")
            self.assertTrue(entries[0].is_winner)
            self.assertEqual(entries[0].prize_tier, "grand")
            self.assertEqual(len(list_winners(session, EVENT, standing_only=True)), 2)

    def test_winner_from_another_configuration_is_not_replaced_without_successor(self) -> None:
        with self.Session.begin() as session:
            first_config = create_configuration(
                session, EVENT, [{"tier": "grand", "name": "Trip", "count": 1}]
            )
            create_entry(session, EVENT, "fp-early")
            early = execute_draw(session, first_config.id).winners[0]

            second_config = create_configuration(
                session, EVENT, [{"tier": "grand", "name": "Trip", "count": 1}]
            )
            create_entry(session, EVENT, "fp-late")
            execute_draw(session, second_config.id)

            with self.assertRaises(NoEligibleEntriesForRedraw):
                redraw_prize_tier(
                    session,
                    EVENT,
                    second_config.id,
                    "grand",
                    previous_winner_id=early.id,
                )

            self.assertTrue(early.is_standing)
            self.assertTrue(early.entry.is_winner)

    def test_standing_identities_excludes_replaced_winners(self) -> None:
        with self.Session.begin() as session:
            config, entries, execution = self._draw(session, 4)
            store = WinnerStore(session)
            self.assertEqual(store.standing_identities(EVENT), {"fp-0", "fp-1", "fp-2"})
            self.assertEqual(
                store.standing_identities(
                    EVENT, excluding_winner_id=self._grand(execution).id
                ),
                {"fp-1", "fp-2"},
            )

            store.annotate_replacement(self._grand(execution).id, "test")
            session.flush()
            self.assertEqual(store.standing_identities(EVENT), {"fp-1", "fp-2"})
            winners = session.scalars(select(Winner)).all()
            self.assertEqual(len(winners), 3)
            self.assertEqual(
                session.scalars(
                    select(Entry).where(Entry.is_winner.is_(True)).order_by(Entry.id)
                ).all(),
                [entries[0], entries[1], entries[2]],
            )


if __name__ == "__main__":
    unittest.main()

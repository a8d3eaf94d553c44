import unittest
import uuid
from datetime import date

from drift.core.exceptions import InvalidArgumentError, NotFoundError
from drift.services.discovery import discover_for, find_candidates, rank_candidates
from drift.services.friends import block_user
from drift.services.geo import GeoPoint
from drift.services.matching import record_swipe
from tests.support import CARMEL, MONTEREY, NEW_YORK, DatabaseTestCase


class FindCandidatesTests(DatabaseTestCase):
    async def asyncSetUp(self) -> None:
        await super().asyncSetUp()
        self.requester = await self.make_profile("Riley", location=CARMEL)

    async def test_radius_keeps_nearby_and_drops_cross_country(self) -> None:
        nearby = await self.make_profile("Monterey", location=MONTEREY)
        await self.make_profile("NYC", location=NEW_YORK)

        ids = await find_candidates(self.db, self.requester.id, 50, "any")
        self.assertEqual(ids, [nearby.id])

    async def test_travel_stop_near_requester_makes_far_candidate_eligible(self) -> None:
        far = await self.make_profile("NYC", location=NEW_YORK)
        await self.add_stop(far, MONTEREY, "Big Sur")

        self.assertEqual(await find_candidates(self.db, self.requester.id, 50, "any"), [far.id])
        basic = await find_candidates(
            self.db, self.requester.id, 50, "any", include_travel_stops=False
        )
        self.assertEqual(basic, [])

    async def test_requester_stop_near_candidate_location(self) -> None:
        nomad = await self.make_profile("Nomad", location=NEW_YORK)
        local = await self.make_profile("Local", location=MONTEREY)
        await self.add_stop(nomad, CARMEL)

        self.assertEqual(await find_candidates(self.db, nomad.id, 50, "any"), [self.requester.id, local.id])

    async def test_stop_to_stop_overlap_without_any_current_location(self) -> None:
        a = await self.make_profile("A")
        b = await self.make_profile("B")
        await self.add_stop(a, MONTEREY)
        await self.add_stop(b, CARMEL)

        self.assertIn(b.id, await find_candidates(self.db, a.id, 50, "any"))

    async def test_stops_without_coordinates_are_ignored(self) -> None:
        drifter = await self.make_profile("Drifter")
        await self.add_stop(drifter, None, "Somewhere")

        self.assertEqual(await find_candidates(self.db, self.requester.id, 500, "any"), [])

    async def test_requester_without_points_gets_nothing(self) -> None:
        await self.make_profile("Monterey", location=MONTEREY)
        nowhere = await self.make_profile("Nowhere")

        self.assertEqual(await find_candidates(self.db, nowhere.id, 500, "any"), [])

    async def test_origin_override(self) -> None:
        new_yorker = await self.make_profile("NYC", location=NEW_YORK)
        ids = await find_candidates(
            self.db, self.requester.id, 50, "any", origin=GeoPoint(40.75, -73.99)
        )
        self.assertEqual(ids, [new_yorker.id])

    async def test_unfinished_onboarding_is_never_returned(self) -> None:
        await self.make_profile("Half", location=MONTEREY, onboarded=False)
        self.assertEqual(await find_candidates(self.db, self.requester.id, 50, "any"), [])

    async def test_mode_compatibility(self) -> None:
        dater = await self.make_profile("Dater", location=MONTEREY, looking_for="dating")
        friend = await self.make_profile("Friend", location=MONTEREY, looking_for="friends")
        either = await self.make_profile("Either", location=MONTEREY, looking_for="both")

        dating = set(await find_candidates(self.db, self.requester.id, 50, "dating"))
        friends = set(await find_candidates(self.db, self.requester.id, 50, "friends"))
        anyone = set(await find_candidates(self.db, self.requester.id, 50, "any"))
        both = set(await find_candidates(self.db, self.requester.id, 50, "both"))

        self.assertEqual(dating, {dater.id, either.id})
        self.assertEqual(friends, {friend.id, either.id})
        self.assertEqual(anyone, {dater.id, friend.id, either.id})
        self.assertEqual(both, anyone)

    async def test_excludes_requester_and_exclude_ids(self) -> None:
        skip = await self.make_profile("Skip", location=MONTEREY)
        keep = await self.make_profile("Keep", location=MONTEREY)

        ids = await find_candidates(self.db, self.requester.id, 50, "any", exclude_ids=[skip.id])
        self.assertEqual(ids, [keep.id])
        self.assertNotIn(self.requester.id, ids)

    async def test_ordered_by_distance_then_id_and_truncated(self) -> None:
        near = await self.make_profile("Near", location=(36.61, -121.8))
        tied = [await self.make_profile(f"Tied {i}", location=MONTEREY) for i in range(3)]

        ranked = await rank_candidates(self.db, self.requester.id, 50, "any")
        self.assertEqual(ranked[0].profile.id, near.id)
        self.assertEqual(
            [c.profile.id for c in ranked[1:]],
            sorted((p.id for p in tied), key=str),
        )
        distances = [c.distance_miles for c in ranked]
        self.assertEqual(distances, sorted(distances))

        self.assertEqual(len(await find_candidates(self.db, self.requester.id, 50, "any", limit=2)), 2)

    async def test_age_window_drops_known_ages_only(self) -> None:
        today = date.today()
        young = await self.make_profile(
            "Young", location=MONTEREY, birthdate=date(today.year - 20, 1, 1)
        )
        older = await self.make_profile(
            "Older", location=MONTEREY, birthdate=date(today.year - 45, 1, 1)
        )
        unknown = await self.make_profile("Unknown", location=MONTEREY, birthdate=None)

        ids = set(
            await find_candidates(self.db, self.requester.id, 50, "any", min_age=30, max_age=50)
        )
        self.assertEqual(ids, {older.id, unknown.id})
        self.assertNotIn(young.id, ids)

    async def test_invalid_arguments(self) -> None:
        for kwargs in (
            {"max_distance_miles": 0, "looking_for_mode": "any"},
            {"max_distance_miles": 501, "looking_for_mode": "any"},
            {"max_distance_miles": 50, "looking_for_mode": "romance"},
            {"max_distance_miles": 50, "looking_for_mode": "any", "limit": 0},
            {"max_distance_miles": 50, "looking_for_mode": "any", "limit": 101},
            {"max_distance_miles": 50, "looking_for_mode": "any", "min_age": 17},
            {"max_distance_miles": 50, "looking_for_mode": "any", "min_age": 40, "max_age": 30},
        ):
            with self.subTest(**kwargs):
                with self.assertRaises(InvalidArgumentError):
                    await find_candidates(self.db, self.requester.id, **kwargs)

    async def test_unknown_requester(self) -> None:
        with self.assertRaises(NotFoundError):
            await find_candidates(self.db, uuid.uuid4(), 50, "any")


class DiscoverForTests(DatabaseTestCase):
    async def test_excludes_swiped_and_blocked_profiles(self) -> None:
        me = await self.make_profile("Me", location=CARMEL)
        swiped = await self.make_profile("Swiped", location=MONTEREY)
        blocked_by_me = await self.make_profile("Blocked", location=MONTEREY)
        blocked_me = await self.make_profile("Blocker", location=MONTEREY)
        fresh = await self.make_profile("Fresh", location=MONTEREY)

        await record_swipe(self.db, me.id, swiped.id, "left", dispatcher=self.dispatcher)
        await block_user(self.db, me.id, blocked_by_me.id)
        await block_user(self.db, blocked_me.id, me.id)

        candidates = await discover_for(self.db, me, "any", 40)
        self.assertEqual([c.profile.id for c in candidates], [fresh.id])

    async def test_uses_preferred_radius_and_dating_age_range(self) -> None:
        today = date.today()
        me = await self.make_profile(
            "Me",
            location=CARMEL,
            preferred_max_distance_miles=5,
            preferred_min_age=30,
            preferred_max_age=40,
        )
        close_young = await self.make_profile(
            "Close", location=(36.62, -121.8), birthdate=date(today.year - 22, 1, 1)
        )
        close_match = await self.make_profile(
            "Closer", location=(36.61, -121.8), birthdate=date(today.year - 35, 1, 1)
        )
        await self.make_profile("Monterey", location=MONTEREY)

        dating = await discover_for(self.db, me, "dating", 40)
        self.assertEqual([c.profile.id for c in dating], [close_match.id])

        friends = await discover_for(self.db, me, "friends", 40)
        self.assertEqual({c.profile.id for c in friends}, {close_young.id, close_match.id})


if __name__ == "__main__":
    unittest.main()

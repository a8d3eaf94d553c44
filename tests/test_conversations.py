import asyncio
import unittest
import uuid

from sqlalchemy import func, select

from drift.core.exceptions import InvalidArgumentError, NotFoundError, UnauthorizedError
from drift.models import Conversation, ConversationParticipant, Message
from drift.services import conversations as chat
from tests.support import DatabaseTestCase


class GetOrCreateConversationTests(DatabaseTestCase):
    async def asyncSetUp(self) -> None:
        await super().asyncSetUp()
        self.alex = await self.make_profile("Alex")
        self.blair = await self.make_profile("Blair")

    async def count(self, model) -> int:
        return (await self.db.execute(select(func.count(model.id)))).scalar_one()

    async def test_is_idempotent_and_symmetric(self) -> None:
        first = await chat.get_or_create_conversation(self.db, "dating", self.alex.id, self.blair.id)
        again = await chat.get_or_create_conversation(self.db, "dating", self.alex.id, self.blair.id)
        reversed_ = await chat.get_or_create_conversation(self.db, "dating", self.blair.id, self.alex.id)

        self.assertEqual(first, again)
        self.assertEqual(first, reversed_)
        self.assertEqual(await self.count(Conversation), 1)
        self.assertEqual(await self.count(ConversationParticipant), 2)

    async def test_type_separates_conversations(self) -> None:
        dating = await chat.get_or_create_conversation(self.db, "dating", self.alex.id, self.blair.id)
        friends = await chat.get_or_create_conversation(self.db, "friends", self.alex.id, self.blair.id)

        self.assertNotEqual(dating, friends)

    async def test_rejects_bad_arguments(self) -> None:
        with self.assertRaises(InvalidArgumentError):
            await chat.get_or_create_conversation(self.db, "dating", self.alex.id, self.alex.id)
        with self.assertRaises(InvalidArgumentError):
            await chat.get_or_create_conversation(self.db, "activity", self.alex.id, self.blair.id)
        with self.assertRaises(InvalidArgumentError):
            await chat.get_or_create_conversation(self.db, "group", self.alex.id, self.blair.id)
        with self.assertRaises(NotFoundError):
            await chat.get_or_create_conversation(self.db, "dating", self.alex.id, uuid.uuid4())

    async def test_hidden_or_left_state_does_not_split_the_pair(self) -> None:
        first = await chat.get_or_create_conversation(self.db, "friends", self.alex.id, self.blair.id)
        await chat.hide_conversation(self.db, first, self.alex.id)
        await chat.leave_conversation(self.db, first, self.blair.id)

        again = await chat.get_or_create_conversation(self.db, "friends", self.blair.id, self.alex.id)
        self.assertEqual(first, again)
        self.assertEqual(await self.count(Conversation), 1)

        # Blair reopened it, so only Blair's list shows it again
        self.assertEqual(len(await chat.list_conversations(self.db, self.blair.id)), 1)
        self.assertEqual(await chat.list_conversations(self.db, self.alex.id), [])

    async def test_other_side_resolving_does_not_undo_a_leave(self) -> None:
        conversation_id = await chat.get_or_create_conversation(self.db, "friends", self.alex.id, self.blair.id)
        await chat.leave_conversation(self.db, conversation_id, self.alex.id)

        await chat.get_or_create_conversation(self.db, "friends", self.blair.id, self.alex.id)

        self.assertEqual(await chat.list_conversations(self.db, self.alex.id, include_hidden=True), [])
        self.assertEqual(len(await chat.list_conversations(self.db, self.blair.id)), 1)

    async def test_conversation_created_by_another_caller_is_reused(self) -> None:
        key = chat.direct_key(self.alex.id, self.blair.id)
        existing = Conversation(type="dating", direct_key=key)
        self.db.add(existing)
        await self.db.commit()

        # Membership lookup misses because the winner has no participants yet
        conversation_id = await chat.get_or_create_conversation(self.db, "dating", self.blair.id, self.alex.id)

        self.assertEqual(conversation_id, existing.id)
        self.assertEqual(await self.count(Conversation), 1)
        self.assertEqual(await self.count(ConversationParticipant), 2)

    async def test_concurrent_callers_converge(self) -> None:
        async def resolve(a, b):
            async with self.session_factory() as session:
                return await chat.get_or_create_conversation(session, "dating", a.id, b.id)

        ids = await asyncio.gather(
            resolve(self.alex, self.blair),
            resolve(self.blair, self.alex),
            resolve(self.alex, self.blair),
        )

        self.assertEqual(len(set(ids)), 1)
        self.assertEqual(await self.count(Conversation), 1)
        self.assertEqual(await self.count(ConversationParticipant), 2)

    async def test_concurrent_first_messages_share_one_conversation(self) -> None:
        async def open_and_send(sender, other, text):
            async with self.session_factory() as session:
                conversation_id = await chat.get_or_create_conversation(
                    session, "dating", sender.id, other.id
                )
                await chat.send_message(
                    session, conversation_id, sender.id, text, dispatcher=self.dispatcher
                )
                return conversation_id

        ids = await asyncio.gather(
            open_and_send(self.alex, self.blair, "Hey from Alex"),
            open_and_send(self.blair, self.alex, "Hey from Blair"),
        )

        self.assertEqual(ids[0], ids[1])
        self.assertEqual(await self.count(Conversation), 1)
        messages = await chat.list_messages(self.db, ids[0], self.alex.id)
        self.assertEqual({m.content for m in messages}, {"Hey from Alex", "Hey from Blair"})


class SendMessageTests(DatabaseTestCase):
    async def asyncSetUp(self) -> None:
        await super().asyncSetUp()
        self.alex = await self.make_profile("Alex")
        self.blair = await self.make_profile("Blair")
        self.stranger = await self.make_profile("Stranger")
        self.conversation_id = await chat.get_or_create_conversation(
            self.db, "dating", self.alex.id, self.blair.id
        )

    async def send(self, sender, content, images=()):
        return await chat.send_message(
            self.db, self.conversation_id, sender.id, content, images, dispatcher=self.dispatcher
        )

    async def test_send_notifies_other_participant_with_preview(self) -> None:
        long_text = "x" * 150
        message_id = await self.send(self.alex, long_text)

        self.assertEqual(self.pushes_to(self.alex), [])
        push = self.pushes_to(self.blair)[0]
        self.assertEqual(push["title"], "Alex")
        self.assertEqual(push["body"], "x" * 100 + "...")
        self.assertEqual(
            push["data"],
            {
                "conversation_id": str(self.conversation_id),
                "message_id": str(message_id),
                "type": "message",
            },
        )

    async def test_sender_without_name_is_someone(self) -> None:
        anon = await self.make_profile(None)
        conversation_id = await chat.get_or_create_conversation(self.db, "friends", anon.id, self.blair.id)
        await chat.send_message(self.db, conversation_id, anon.id, "hello", dispatcher=self.dispatcher)

        self.assertEqual(self.pushes_to(self.blair)[0]["title"], "Someone")

    async def test_send_bumps_conversation_activity(self) -> None:
        before = (await self.db.get(Conversation, self.conversation_id)).updated_at
        await self.send(self.alex, "hello")

        conversation = await self.db.get(Conversation, self.conversation_id)
        await self.db.refresh(conversation)
        self.assertGreater(conversation.updated_at, before)

    async def test_content_rules(self) -> None:
        with self.assertRaises(InvalidArgumentError):
            await self.send(self.alex, "   ")
        with self.assertRaises(InvalidArgumentError):
            await self.send(self.alex, "a" * 5001)
        with self.assertRaises(InvalidArgumentError):
            await self.send(self.alex, "pics", [f"https://img.example/{i}.jpg" for i in range(11)])

        # Images alone are fine
        await self.send(self.alex, "", ["https://img.example/van.jpg"])
        self.assertEqual(self.pushes_to(self.blair)[0]["body"], "Sent a photo")

    async def test_non_participant_cannot_send_or_read(self) -> None:
        with self.assertRaises(UnauthorizedError):
            await self.send(self.stranger, "let me in")
        with self.assertRaises(UnauthorizedError):
            await chat.list_messages(self.db, self.conversation_id, self.stranger.id)
        with self.assertRaises(NotFoundError):
            await chat.send_message(self.db, uuid.uuid4(), self.alex.id, "hi", dispatcher=self.dispatcher)

    async def test_muted_conversation_is_not_pushed(self) -> None:
        await chat.set_muted(self.db, self.conversation_id, self.blair.id, True)
        await self.send(self.alex, "are you there?")

        self.assertEqual(self.pushes, [])

    async def test_push_failure_keeps_the_message(self) -> None:
        def failing_sender(*args):
            raise ConnectionError("FCM down")

        self.dispatcher.set_sender_for_tests(failing_sender)
        message_id = await self.send(self.alex, "still here")

        message = await self.db.get(Message, message_id)
        self.assertEqual(message.content, "still here")


class ConversationStateTests(DatabaseTestCase):
    async def asyncSetUp(self) -> None:
        await super().asyncSetUp()
        self.alex = await self.make_profile("Alex")
        self.blair = await self.make_profile("Blair")
        self.conversation_id = await chat.get_or_create_conversation(
            self.db, "dating", self.alex.id, self.blair.id
        )

    async def test_unread_counts_and_mark_read(self) -> None:
        for text in ("one", "two", "three"):
            await chat.send_message(self.db, self.conversation_id, self.alex.id, text, dispatcher=self.dispatcher)

        [summary] = await chat.list_conversations(self.db, self.blair.id)
        self.assertEqual(summary.unread_count, 3)
        self.assertEqual(summary.last_message.content, "three")
        self.assertEqual([p.id for p in summary.others], [self.alex.id])

        [own] = await chat.list_conversations(self.db, self.alex.id)
        self.assertEqual(own.unread_count, 0)

        await chat.mark_read(self.db, self.conversation_id, self.blair.id)
        [summary] = await chat.list_conversations(self.db, self.blair.id)
        self.assertEqual(summary.unread_count, 0)

    async def test_hide_unhide_and_leave(self) -> None:
        await chat.hide_conversation(self.db, self.conversation_id, self.alex.id)
        self.assertEqual(await chat.list_conversations(self.db, self.alex.id), [])
        self.assertEqual(len(await chat.list_conversations(self.db, self.alex.id, include_hidden=True)), 1)

        await chat.unhide_conversation(self.db, self.conversation_id, self.alex.id)
        self.assertEqual(len(await chat.list_conversations(self.db, self.alex.id)), 1)

        await chat.leave_conversation(self.db, self.conversation_id, self.alex.id)
        self.assertEqual(await chat.list_conversations(self.db, self.alex.id, include_hidden=True), [])
        # Leaving only changes Alex's own list
        self.assertEqual(len(await chat.list_conversations(self.db, self.blair.id)), 1)
        self.assertEqual(await chat.list_messages(self.db, self.conversation_id, self.alex.id), [])

    async def test_left_participant_is_still_notified(self) -> None:
        await chat.leave_conversation(self.db, self.conversation_id, self.blair.id)
        await chat.send_message(self.db, self.conversation_id, self.alex.id, "still around?", dispatcher=self.dispatcher)

        self.assertEqual(self.pushes_to(self.blair)[0]["body"], "still around?")

    async def test_delete_message_is_soft_and_author_only(self) -> None:
        keep = await chat.send_message(self.db, self.conversation_id, self.alex.id, "keep", dispatcher=self.dispatcher)
        drop = await chat.send_message(self.db, self.conversation_id, self.alex.id, "drop", dispatcher=self.dispatcher)

        with self.assertRaises(UnauthorizedError):
            await chat.delete_message(self.db, drop, self.blair.id)

        await chat.delete_message(self.db, drop, self.alex.id)
        messages = await chat.list_messages(self.db, self.conversation_id, self.blair.id)
        self.assertEqual([m.id for m in messages], [keep])

        with self.assertRaises(NotFoundError):
            await chat.delete_message(self.db, drop, self.alex.id)

    async def test_list_messages_pages_backwards(self) -> None:
        for i in range(5):
            await chat.send_message(self.db, self.conversation_id, self.alex.id, f"m{i}", dispatcher=self.dispatcher)

        latest = await chat.list_messages(self.db, self.conversation_id, self.blair.id, limit=2)
        self.assertEqual([m.content for m in latest], ["m3", "m4"])

        older = await chat.list_messages(
            self.db, self.conversation_id, self.blair.id, limit=10, before=latest[0].created_at
        )
        self.assertEqual([m.content for m in older], ["m0", "m1", "m2"])


if __name__ == "__main__":
    unittest.main()

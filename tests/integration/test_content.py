"""Integration tests for comments, conversations, updates, reactions and social links."""

from datetime import date

import pytest

from fundhost.config import get_settings
from fundhost.constants.activities import ActivityType
from fundhost.constants.roles import MemberRole
from fundhost.errors import InvariantError, NotFoundError, ValidationError
from fundhost.models.comment import Comment
from fundhost.models.social_link import SocialLinkType
from fundhost.models.update import NotificationAudience


@pytest.fixture
def conversation(services, user, collective):
    return services.conversations.create_with_comment(
        user,
        collective,
        "Roadmap 2025",
        "<p>What should we build next?</p>",
        tags=["Roadmap", "planning"],
    ).entity


@pytest.mark.integration
class TestComments:
    def test_comment_must_be_linked(self, services, db_session, user, collective):
        with pytest.raises(InvariantError):
            services.comments.create(user, collective, "<p>Floating</p>")
        assert db_session.query(Comment).count() == 0

    def test_comment_is_sanitized(self, services, user, collective, conversation):
        result = services.comments.create(
            user,
            collective,
            "<p>Sure <script>alert(1)</script></p>",
            conversation_id=conversation.id,
        )
        assert result.entity.html == "<p>Sure </p>"
        assert result.event_types() == [ActivityType.COLLECTIVE_COMMENT_CREATED]
        assert result.events[0].host_collective_id == collective.host_collective_id

    def test_editing_root_comment_refreshes_summary(self, services, conversation):
        root = services.comments.get_by_id(conversation.root_comment_id)
        services.comments.edit(root, "<p>Updated body</p>")
        assert services.conversations.get_by_id(conversation.id).summary == "Updated body"

    def test_deleting_root_comment_deletes_conversation(
        self, services, user, collective, conversation
    ):
        reply = services.comments.create(
            user, collective, "<p>Reply</p>", conversation_id=conversation.id
        ).entity
        root = services.comments.get_by_id(conversation.root_comment_id)

        services.comments.delete(root)
        assert services.conversations.get_by_id(conversation.id) is None
        assert services.comments.get_by_id(reply.id) is None
        assert services.comments.list_for_conversation(conversation.id) == []

    def test_deleting_a_reply_keeps_conversation(self, services, user, collective, conversation):
        reply = services.comments.create(
            user, collective, "<p>Reply</p>", conversation_id=conversation.id
        ).entity
        services.comments.delete(reply)
        assert services.conversations.get_by_id(conversation.id) is not None
        assert [c.id for c in services.comments.list_for_conversation(conversation.id)] == [
            conversation.root_comment_id
        ]


@pytest.mark.integration
class TestConversations:
    def test_create_with_root_comment(self, services, user, conversation):
        assert conversation.summary == "What should we build next?"
        root = services.comments.get_by_id(conversation.root_comment_id)
        assert root.conversation_id == conversation.id
        assert services.conversations.is_following(user.id, conversation.id)

    def test_event(self, services, user, collective):
        result = services.conversations.create_with_comment(
            user, collective, "Hello", "<p>First post</p>"
        )
        assert result.event_types() == [ActivityType.COLLECTIVE_CONVERSATION_CREATED]
        assert result.events[0].data["conversation"]["id"] == result.entity.id

    def test_title_too_short_rolls_back(self, services, db_session, user, collective):
        with pytest.raises(ValidationError):
            services.conversations.create_with_comment(user, collective, "Hi", "<p>x</p>")
        assert db_session.query(Comment).count() == 0

    def test_follow_unfollow(self, services, make_user, user, conversation):
        bob = make_user("bob@example.com", "Bob")
        assert services.conversations.follow(bob.id, conversation.id).created is True
        assert services.conversations.follow(bob.id, conversation.id).created is False

        services.conversations.unfollow(bob.id, conversation.id)
        assert not services.conversations.is_following(bob.id, conversation.id)
        assert [u.id for u in services.conversations.get_users_following(conversation.id)] == [
            user.id
        ]

        services.conversations.follow(bob.id, conversation.id)
        assert services.conversations.is_following(bob.id, conversation.id)

    def test_most_popular_tags(self, services, user, collective, conversation):
        services.conversations.create_with_comment(
            user, collective, "Sprint", "<p>Planning</p>", tags=["planning"]
        )
        tags = services.conversations.get_most_popular_tags_for_collective(collective.id)
        assert tags == [
            {"id": "planning", "tag": "planning", "count": 2},
            {"id": "roadmap", "tag": "roadmap", "count": 1},
        ]


@pytest.mark.integration
class TestUpdates:
    def test_slugs_are_unique_per_collective(self, services, user, collective, make_collective):
        first = services.updates.create(user, collective, "Monthly News")
        second = services.updates.create(user, collective, "Monthly News")
        elsewhere = services.updates.create(user, make_collective("Other"), "Monthly News")
        assert first.slug == "monthly-news"
        assert second.slug == "monthly-news1"
        assert elsewhere.slug == "monthly-news"

    def test_html_is_summarized(self, services, user, collective):
        update = services.updates.create(user, collective, "News", html="<p>We <b>shipped</b>!</p>")
        assert update.summary == "We shipped!"

    def test_tier_must_belong_to_collective(self, services, user, collective, make_collective):
        other = make_collective("Other")
        tier = services.tiers.create(other.id, "Backer", amount=500)
        with pytest.raises(InvariantError):
            services.updates.create(user, collective, "Backers only", tier_id=tier.id)
        with pytest.raises(NotFoundError):
            services.updates.create(user, collective, "Backers only", tier_id=404)

    def test_edit_follows_title_until_published(self, services, user, collective):
        update = services.updates.create(user, collective, "Draft")
        services.updates.edit(update, user, title="Launch day", created_by_user_id=404)
        assert update.slug == "launch-day"
        assert update.created_by_user_id == user.id
        assert update.last_edited_by_user_id == user.id

        services.updates.publish(update, user)
        services.updates.edit(update, user, title="Launch day recap")
        assert update.slug == "launch-day"

    def test_publish(self, services, user, collective):
        update = services.updates.create(user, collective, "Launch")
        result = services.updates.publish(update, user, NotificationAudience.ALL)
        assert update.is_published
        assert result.created is False
        event = result.events[0]
        assert event.type == ActivityType.COLLECTIVE_UPDATE_PUBLISHED
        website = get_settings().website_url.rstrip("/")
        assert event.data["url"] == f"{website}/{collective.slug}/updates/launch"

        services.updates.unpublish(update, user)
        assert not update.is_published

    def test_delete_frees_slug(self, services, user, collective):
        update = services.updates.create(user, collective, "News")
        services.comments.create(user, collective, "<p>Nice</p>", update_id=update.id)

        services.updates.delete(update, user)
        assert services.updates.get_by_id(update.id) is None
        assert services.comments.list_for_update(update.id) == []
        assert services.updates.get_by_slug(collective.id, "news") is None

        again = services.updates.create(user, collective, "News")
        assert again.slug == "news"

    def test_make_updates_public(self, services, user, collective):
        scheduled = services.updates.create(
            user, collective, "Secret", is_private=True, make_public_on=date(2024, 1, 1)
        )
        later = services.updates.create(
            user, collective, "Later", is_private=True, make_public_on=date(2030, 1, 1)
        )
        assert services.updates.make_updates_public(today=date(2024, 6, 1)) == 1
        assert services.updates.make_updates_public(today=date(2024, 6, 1)) == 0
        assert services.updates.get_by_id(scheduled.id).is_private is False
        assert services.updates.get_by_id(later.id).is_private is True

    def test_target_roles_for_private_update(self, services, user, collective):
        update = services.updates.create(user, collective, "Backers", is_private=True)
        roles = services.updates.get_target_member_roles(update)
        assert MemberRole.BACKER in roles
        assert MemberRole.FOLLOWER not in roles


@pytest.mark.integration
class TestEmojiReactions:
    def test_reactions_are_idempotent(self, services, make_user, user, collective, conversation):
        bob = make_user("bob@example.com", "Bob")
        comment_id = conversation.root_comment_id
        first = services.emoji_reactions.add_reaction_on_comment(user, comment_id, "🎉")
        again = services.emoji_reactions.add_reaction_on_comment(user, comment_id, "🎉")
        services.emoji_reactions.add_reaction_on_comment(bob, comment_id, "🎉")
        services.emoji_reactions.add_reaction_on_comment(bob, comment_id, "🚀")

        assert first.created is True
        assert again.created is False
        assert again.entity.id == first.entity.id
        assert services.emoji_reactions.get_counts(comment_id=comment_id) == {"🎉": 2, "🚀": 1}

    def test_remove(self, services, user, collective):
        update = services.updates.create(user, collective, "News")
        services.emoji_reactions.add_reaction_on_update(user, update.id, "🚀")
        assert services.emoji_reactions.remove_reaction(user, "🚀", update_id=update.id) is True
        assert services.emoji_reactions.remove_reaction(user, "🚀", update_id=update.id) is False
        assert services.emoji_reactions.get_counts(update_id=update.id) == {}

    def test_remove_needs_a_target(self, services, user):
        with pytest.raises(InvariantError):
            services.emoji_reactions.remove_reaction(user, "🚀")

    def test_unsupported_emoji(self, services, user, conversation):
        with pytest.raises(ValidationError):
            services.emoji_reactions.add_reaction_on_comment(
                user, conversation.root_comment_id, "🍕"
            )


@pytest.mark.integration
class TestSocialLinks:
    def test_set_links_replaces_and_deduplicates(self, services, collective):
        links = services.social_links.set_links(
            collective.id,
            [
                {"type": "WEBSITE", "url": "https://babel.org"},
                {"type": "GITHUB", "url": "https://github.com/babel"},
                {"type": "WEBSITE", "url": "https://babel.org"},
            ],
        )
        assert [(link.type, link.order) for link in links] == [
            (SocialLinkType.WEBSITE, 0),
            (SocialLinkType.GITHUB, 1),
        ]

        services.social_links.set_links(
            collective.id, [{"type": "GITHUB", "url": "https://github.com/babel"}]
        )
        index = services.social_links.index(collective.id)
        assert list(index) == [(collective.id, SocialLinkType.GITHUB, "https://github.com/babel")]
        assert index[(collective.id, SocialLinkType.GITHUB, "https://github.com/babel")].order == 0

    def test_invalid_url(self, services, collective):
        with pytest.raises(ValidationError):
            services.social_links.set_links(collective.id, [{"type": "WEBSITE", "url": "nope"}])

"""Member join, view, mute/unmute, leave and kick decisions."""
from chat_core.policies.rules import check_rank_rule, get_rule, membership_gate
from chat_core.policies.verdict import allow, conflict, forbid, not_found


def join_self(actor, chat, context=None):
    if chat.is_member(actor.user_id):
        return conflict("Chat membership already exist")
    if not chat.is_group or chat.is_private:
        return not_found()
    return allow("Membership permission granted")


def view(actor, chat, context=None):
    denied = membership_gate(actor, chat, "View permission denied")
    if denied is not None:
        return denied
    return allow("View permission granted")


def mute(actor, chat, context):
    return check_rank_rule(get_rule("member", "mute"), actor, chat, [context["target_user"]], context)


def unmute(actor, chat, context):
    return check_rank_rule(get_rule("member", "unmute"), actor, chat, [context["target_user"]], context)


def leave_self(actor, chat, context=None):
    if chat.is_owner(actor.user_id):
        return forbid("Must transfer chat ownership before you can leave")
    denied = membership_gate(actor, chat, "Must be member to leave chat")
    if denied is not None:
        return denied
    return allow("Member can leave chat")


def kick(actor, chat, context):
    return check_rank_rule(get_rule("member", "kick"), actor, chat, [context["target_user"]], context)

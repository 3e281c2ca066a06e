"""Models package."""
from cotrack.models.user import User
from cotrack.models.session import Session, SessionMember
from cotrack.models.tracking import NavigationTracking
from cotrack.models.invitation import SessionInvitation
from cotrack.models.ingested_content import IngestedContent
from cotrack.models.chat_history import ChatHistory
from cotrack.models.team_analysis import TeamSessionAnalysis
from cotrack.models.page import TeamPage, PrivatePage
from cotrack.models.member_summary import MemberSummary
from cotrack.models.callout import Callout

__all__ = [
    "User",
    "Session",
    "SessionMember",
    "NavigationTracking",
    "SessionInvitation",
    "IngestedContent",
    "ChatHistory",
    "TeamSessionAnalysis",
    "TeamPage",
    "PrivatePage",
    "MemberSummary",
    "Callout",
]

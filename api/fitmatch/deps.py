"""
Per-request component factories.

Nothing here is cached at module level: every request gets a fresh
repository and fresh services bound to it. Tests swap the store by
overriding ``get_repository`` on the app.
"""

from fastapi import Depends, Request

from fitmatch import config, database
from fitmatch.repo import Repository
from fitmatch.services.candidates import CandidateFilter
from fitmatch.services.conversations import ConversationGate
from fitmatch.services.events import LoggingPushChannel, PushChannel
from fitmatch.services.fitness import FitnessSync
from fitmatch.services.ledger import MatchLedger
from fitmatch.services.preferences import PreferencesStore
from fitmatch.services.stats import AdminPolicy


def get_repository() -> Repository:
    return Repository(database.SessionLocal)


def get_preferences_store(repo: Repository = Depends(get_repository)) -> PreferencesStore:
    return PreferencesStore(repo)


def get_candidate_filter(
    repo: Repository = Depends(get_repository),
    preferences: PreferencesStore = Depends(get_preferences_store),
) -> CandidateFilter:
    return CandidateFilter(repo, preferences, pool_cap=config.CANDIDATE_POOL_CAP)


def get_ledger(repo: Repository = Depends(get_repository)) -> MatchLedger:
    return MatchLedger(repo)


def get_conversation_gate(
    repo: Repository = Depends(get_repository),
    ledger: MatchLedger = Depends(get_ledger),
) -> ConversationGate:
    return ConversationGate(repo, ledger, max_length=config.MAX_MESSAGE_LENGTH)


def get_fitness_sync(repo: Repository = Depends(get_repository)) -> FitnessSync:
    return FitnessSync(repo, window_days=config.METRICS_WINDOW_DAYS)


def get_admin_policy() -> AdminPolicy:
    return AdminPolicy(config.ADMIN_USER_IDS)


def get_push_channel(request: Request) -> PushChannel:
    # A socket layer attaches itself as app.state.push_channel.
    return getattr(request.app.state, "push_channel", None) or LoggingPushChannel()

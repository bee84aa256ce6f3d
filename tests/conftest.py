from __future__ import annotations

import pytest

from deepdive.agents.chat_agent import ChatAgent
from deepdive.agents.connection_agent import ConnectionAgent
from deepdive.agents.credibility_agent import CredibilityAgent
from deepdive.agents.fact_check_agent import FactCheckAgent
from deepdive.agents.orchestrator import AnalysisOrchestrator
from deepdive.agents.summary_agent import SummaryAgent
from deepdive.agents.topic_agent import TopicAgent
from deepdive.services.conversations import ConversationStore
from deepdive.services.memory_index import ArticleMemoryIndex
from tests.fakes import CREDIBILITY_JSON, SUMMARY_JSON, with_client


@pytest.fixture
def summary_agent():
    return with_client(SummaryAgent(), SUMMARY_JSON)


@pytest.fixture
def fallback_summary_agent():
    return with_client(SummaryAgent(provider="anthropic"), SUMMARY_JSON)


@pytest.fixture
def credibility_agent():
    return with_client(CredibilityAgent(), CREDIBILITY_JSON)


@pytest.fixture
def fact_check_agent():
    return with_client(FactCheckAgent(), "[]")


@pytest.fixture
def topic_agent():
    return with_client(TopicAgent(), '["transit", "city budget"]')


@pytest.fixture
def connection_agent():
    return with_client(ConnectionAgent(), "Both articles cover the city transit budget.")


@pytest.fixture
def chat_agent():
    return with_client(ChatAgent(), "The budget passed 7 to 2.")


@pytest.fixture
def memory(topic_agent, connection_agent):
    return ArticleMemoryIndex(topic_agent=topic_agent, connection_agent=connection_agent)


@pytest.fixture
def conversations(chat_agent):
    return ConversationStore(chat_agent=chat_agent)


@pytest.fixture
def orchestrator(
    summary_agent,
    fallback_summary_agent,
    credibility_agent,
    fact_check_agent,
    conversations,
    memory,
):
    return AnalysisOrchestrator(
        conversations=conversations,
        memory=memory,
        summary_agent=summary_agent,
        fallback_summary_agent=fallback_summary_agent,
        credibility_agent=credibility_agent,
        fact_check_agent=fact_check_agent,
    )

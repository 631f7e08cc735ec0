"""
Know-it-all chat service: retrieval-augmented answers with smart model routing.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from src.app.errors import KnowItAllError
from src.content.store import Conversation, ConversationMessage, KnowledgeSnippet, KnowledgeStore
from src.llm.config import LLMConfig
from src.llm.embeddings import EmbeddingService
from src.llm.providers import ChatCompletionResponse, LLMProvider, ModelRouter, QueryAnalysisResult
from src.monitoring.metrics import MessageTimer
from src.monitoring.tracer import init_phoenix_tracing

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are Know-it-all, a professional AI business consultant.

Your role:
- Professional, friendly and accurate
- Answer from the knowledge base documents provided to you
- If the knowledge base has nothing relevant, say so honestly and give general advice
- Quote the specific knowledge base content that supports your answer
- Answer in Traditional Chinese unless the user asks for another language

Answer format:
1. Answer the question directly
2. Cite key content from relevant knowledge documents
3. Give concrete, actionable recommendations
4. Ask clarifying questions when needed"""

KNOWLEDGE_PREAMBLE = "Relevant knowledge base documents, use them to answer the question:\n\n"
PREVIEW_CHARS = 500


@dataclass
class ChatResult:
    conversation_id: str
    user_message: ConversationMessage
    assistant_message: ConversationMessage
    model: str
    tokens_used: int
    estimated_cost: float
    knowledge_docs_used: List[KnowledgeSnippet] = field(default_factory=list)
    analysis: Optional[QueryAnalysisResult] = None

    @property
    def message_id(self) -> Optional[str]:
        return self.assistant_message.id


def format_knowledge_context(snippets: List[KnowledgeSnippet]) -> str:
    """Number each document and keep a short preview of its content."""
    return "\n\n---\n\n".join(
        f"[Document {i}] {s.title}\n{s.content_preview or s.content[:PREVIEW_CHARS]}..."
        for i, s in enumerate(snippets, start=1)
    )


class KnowItAllChat:
    def __init__(
        self,
        store: KnowledgeStore,
        embeddings: EmbeddingService,
        router: Optional[ModelRouter] = None,
        provider: Optional[LLMProvider] = None,
        config: Optional[LLMConfig] = None,
    ):
        self.store = store
        self.embeddings = embeddings
        self.router = router or ModelRouter(config)
        self.config = config or self.router.config
        self._provider = provider

    @classmethod
    def from_config(cls, config: Optional[LLMConfig] = None) -> "KnowItAllChat":
        """
        Application entry point: wire the Postgres store, embeddings and
        router from environment settings and start tracing.
        """
        config = config or LLMConfig.from_env()
        config.validate()
        init_phoenix_tracing()
        return cls(
            store=KnowledgeStore(),
            embeddings=EmbeddingService.from_config(config),
            router=ModelRouter(config),
            config=config,
        )

    @property
    def provider(self) -> LLMProvider:
        if self._provider is None:
            self._provider = self.router.get_provider()
        return self._provider

    def start_conversation(self, user_id: str, title: Optional[str] = None) -> Conversation:
        return self.store.create_conversation(user_id, title)

    def list_conversations(
        self, user_id: str, limit: int = 50, offset: int = 0, include_archived: bool = False
    ) -> Tuple[List[Conversation], int]:
        return self.store.list_conversations(user_id, limit, offset, include_archived)

    def delete_conversation(self, conversation_id: str, user_id: str) -> bool:
        return self.store.delete_conversation(conversation_id, user_id)

    def retrieve_knowledge(
        self, query: str, user_id: Optional[str] = None, match_count: int = 5
    ) -> List[KnowledgeSnippet]:
        """
        Find knowledge documents relevant to the query.

        Retrieval is best effort: an embedding or search failure is logged
        and the chat continues without context.
        """
        try:
            query_embedding = self.embeddings.generate_embedding(query)
            snippets = self.store.search_documents(
                query_embedding,
                user_id=user_id,
                match_threshold=self.config.knowledge_match_threshold,
                match_count=match_count,
            )
        except Exception as e:
            logger.warning(f"[CHAT] Failed to retrieve knowledge documents ({type(e).__name__}): {e}")
            return []

        logger.info(f"[CHAT] Retrieved {len(snippets)} relevant knowledge documents")
        return snippets

    def build_messages(
        self,
        query: str,
        history: List[ConversationMessage],
        snippets: List[KnowledgeSnippet],
    ) -> List[dict]:
        messages = [{"role": "system", "content": SYSTEM_PROMPT}]

        for msg in history[-self.config.history_limit:]:
            messages.append({"role": msg.role, "content": msg.content})

        if snippets:
            messages.append(
                {"role": "system", "content": KNOWLEDGE_PREAMBLE + format_knowledge_context(snippets)}
            )

        messages.append({"role": "user", "content": query})
        return messages

    def generate_response(
        self,
        query: str,
        history: List[ConversationMessage],
        snippets: List[KnowledgeSnippet],
        model: str,
    ) -> ChatCompletionResponse:
        """
        Call the chosen model with history and knowledge context.

        Raises:
            KnowItAllError: AI_RESPONSE_FAILED if the provider call fails
        """
        messages = self.build_messages(query, history, snippets)
        logger.info(f"[CHAT] Calling {model} with {len(messages)} messages")

        try:
            return self.provider.chat_completion(
                messages=messages,
                model=model,
                temperature=self.config.temperature,
                max_tokens=self.config.max_response_tokens,
                top_p=self.config.top_p,
            )
        except RuntimeError as e:
            raise KnowItAllError(
                "Failed to generate AI response",
                "AI_RESPONSE_FAILED",
                500,
                {"originalError": str(e)},
            ) from e

    def send_message(
        self,
        conversation_id: str,
        content: str,
        user_id: str,
        model: Optional[str] = None,
        use_smart_mode: Optional[bool] = None,
        retrieve_knowledge: bool = True,
        knowledge_match_count: int = 5,
    ) -> ChatResult:
        """
        Answer one user message and persist the exchange.

        Args:
            conversation_id: Existing conversation owned by user_id
            content: User message
            user_id: Owner of the conversation
            model: Explicit model, or "smart" to let the query analyzer choose
            use_smart_mode: Force smart mode on/off (defaults to config)
            retrieve_knowledge: Search the knowledge base for context
            knowledge_match_count: Max knowledge documents to include

        Returns:
            ChatResult with both stored messages, usage and routing analysis

        Raises:
            KnowItAllError: CONVERSATION_NOT_FOUND, AI_RESPONSE_FAILED or
                            MESSAGE_SEND_FAILED
        """
        with MessageTimer(content) as timer:
            try:
                if not self.store.conversation_exists(conversation_id, user_id):
                    raise KnowItAllError("Conversation not found", "CONVERSATION_NOT_FOUND", 404)

                history = self.store.get_conversation_history(
                    conversation_id, user_id, self.config.history_limit
                )

                snippets = []
                if retrieve_knowledge:
                    snippets = self.retrieve_knowledge(content, user_id, knowledge_match_count)
                timer.num_knowledge_docs = len(snippets)

                decision = self.router.select_model(content, model, use_smart_mode)
                analysis = decision.analysis
                timer.set_routing(
                    decision.model,
                    decision.smart_mode,
                    analysis.complexity.value if analysis else None,
                    analysis.score if analysis else None,
                )

                user_message = self.store.save_message(conversation_id, "user", content, user_id)

                response = self.generate_response(content, history, snippets, decision.model)

                assistant_message = self.store.save_message(
                    conversation_id,
                    "assistant",
                    response.content,
                    user_id,
                    model_used=response.model,
                    prompt_tokens=response.usage.get("prompt_tokens"),
                    completion_tokens=response.usage.get("completion_tokens"),
                    total_tokens=response.total_tokens,
                    estimated_cost=response.estimated_cost,
                    knowledge_docs_used=[s.id for s in snippets],
                )
                timer.message_id = assistant_message.id
                timer.set_usage(response.total_tokens, response.estimated_cost)

                self.store.update_conversation_usage(
                    conversation_id, response.total_tokens, response.estimated_cost
                )
                if not history:
                    self.store.set_title_if_missing(conversation_id, content)

            except KnowItAllError:
                raise
            except Exception as e:
                logger.error(f"[CHAT] Error sending message: {e}")
                raise KnowItAllError(
                    "Failed to send message",
                    "MESSAGE_SEND_FAILED",
                    500,
                    {"originalError": str(e)},
                ) from e

        logger.info(
            f"[CHAT] Message processed ({response.total_tokens} tokens, "
            f"${response.estimated_cost:.6f}, model: {response.model})"
        )

        return ChatResult(
            conversation_id=conversation_id,
            user_message=user_message,
            assistant_message=assistant_message,
            model=response.model,
            tokens_used=response.total_tokens,
            estimated_cost=response.estimated_cost,
            knowledge_docs_used=snippets,
            analysis=analysis,
        )

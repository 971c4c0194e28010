"""도메인 이벤트 서비스: 감사/알림 협력자에게 상태 전이를 전달.

Domain Event Service: Publishes a DomainEvent after every state transition
for the audit and notification collaborators to consume.

Delivery is fire-and-forget: ``emit`` schedules one task per sink on the
running loop and returns immediately. Sink failures are logged and never
reach the caller.

Sinks:
    - logging sink: 항상 활성 (always on, logger ``timekeeper.events``)
    - Axiom sink: AXIOM_API_TOKEN/AXIOM_DATASET 설정 시 활성
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any
from uuid import UUID

from axiom_py import Client as AxiomClient
from pydantic import BaseModel, Field

from timekeeper.config import settings
from timekeeper.utils.timeutil import utcnow

logger = logging.getLogger(__name__)
event_logger = logging.getLogger("timekeeper.events")

EventSink = Callable[["DomainEvent"], Awaitable[None]]


class DomainEvent(BaseModel):
    """상태 전이 이벤트 (State transition event).

    Attributes:
        type: 이벤트 유형 (e.g. "attendance.clock-in", "correction.decided")
        organization_id: 조직 ID (Tenant scope)
        actor_id: 행위자 ID (User who caused the transition)
        entity: 엔티티 이름 (Entity name, e.g. "attendance")
        entity_id: 엔티티 ID
        before / after: 전이 전후 요약 (Compact state before/after)
        occurred_at: 발생 시각 UTC
    """

    type: str
    organization_id: UUID
    actor_id: UUID | None = None
    entity: str
    entity_id: UUID
    before: dict[str, Any] | None = None
    after: dict[str, Any] | None = None
    occurred_at: datetime = Field(default_factory=utcnow)


async def logging_sink(event: DomainEvent) -> None:
    event_logger.info("%s %s/%s", event.type, event.entity, event.entity_id, extra={"event": event.model_dump(mode="json")})


class AxiomSink:
    """Axiom 이벤트 싱크: 동기 클라이언트를 스레드에서 호출.

    Ships events to Axiom. The axiom-py client is synchronous, so ingest
    runs in a worker thread to keep the event loop free.
    """

    def __init__(self, token: str, dataset: str) -> None:
        self._client: AxiomClient = AxiomClient(token=token)
        self._dataset: str = dataset

    async def __call__(self, event: DomainEvent) -> None:
        await asyncio.to_thread(self._client.ingest_events, self._dataset, [event.model_dump(mode="json")])


class EventService:
    """도메인 이벤트 발행 서비스 (Domain event publisher)."""

    def __init__(self, sinks: list[EventSink] | None = None) -> None:
        self._sinks: list[EventSink] = list(sinks) if sinks is not None else [logging_sink]
        # 실행 중 태스크 참조 유지: Keep task references until they finish
        self._pending: set[asyncio.Task[None]] = set()

    def add_sink(self, sink: EventSink) -> None:
        self._sinks.append(sink)

    def emit(
        self,
        event_type: str,
        organization_id: UUID,
        entity: str,
        entity_id: UUID,
        actor_id: UUID | None = None,
        before: dict[str, Any] | None = None,
        after: dict[str, Any] | None = None,
    ) -> DomainEvent:
        """이벤트를 생성하고 각 싱크로 비동기 전달합니다 (대기하지 않음).

        Build the event and schedule delivery to every sink without awaiting.
        Outside a running loop (sync scripts) the event is returned undelivered.
        """
        event: DomainEvent = DomainEvent(
            type=event_type,
            organization_id=organization_id,
            actor_id=actor_id,
            entity=entity,
            entity_id=entity_id,
            before=before,
            after=after,
        )
        try:
            loop: asyncio.AbstractEventLoop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop; dropping event %s", event.type)
            return event

        for sink in self._sinks:
            task: asyncio.Task[None] = loop.create_task(self._deliver(sink, event))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
        return event

    async def _deliver(self, sink: EventSink, event: DomainEvent) -> None:
        try:
            await sink(event)
        except Exception:
            logger.exception("Event sink %r failed for %s", sink, event.type)

    async def drain(self) -> None:
        """대기 중인 전달을 모두 완료합니다 (Wait for in-flight deliveries; used on shutdown and in tests)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


# 싱글턴 인스턴스: Singleton instance
event_service: EventService = EventService()
if settings.AXIOM_API_TOKEN and settings.AXIOM_DATASET:
    event_service.add_sink(AxiomSink(settings.AXIOM_API_TOKEN, settings.AXIOM_DATASET))

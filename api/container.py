"""
Wiring of the store, estimators and services into one object the HTTP layer and
the demos share.
"""

import logging
from dataclasses import dataclass

from config.config import EstimatorConfig, PricingRates, WorkflowConfig, load_estimator_config
from connectors.memory_store import InMemoryLogisticsStore
from connectors.notification_sink import LoggingNotificationSink, NotificationSink
from connectors.payment_provider import InMemoryPaymentProvider, PaymentProvider
from connectors.store import LogisticsStore
from services.analytics import AnalyticsAggregator
from services.assignment import NetworkAssignmentResolver
from services.estimation import Estimator, build_estimator
from services.notifications import NotificationDispatcher
from services.payments import PaymentCoordinator
from services.quotes import QuoteService
from services.workflow import OrderWorkflowEngine
from utils.event_bus import EventBus

logger = logging.getLogger(__name__)


@dataclass
class LogisticsContainer:
    store: LogisticsStore
    event_bus: EventBus
    quotes: QuoteService
    resolver: NetworkAssignmentResolver
    workflow: OrderWorkflowEngine
    payments: PaymentCoordinator
    notifications: NotificationDispatcher
    analytics: AnalyticsAggregator


def build_container(
    store: LogisticsStore | None = None,
    estimator: Estimator | None = None,
    estimator_config: EstimatorConfig | None = None,
    rates: PricingRates | None = None,
    workflow_config: WorkflowConfig | None = None,
    payment_provider: PaymentProvider | None = None,
    notification_sink: NotificationSink | None = None,
) -> LogisticsContainer:
    """
    Build the service graph. Anything not supplied gets the in-process default;
    the estimator configuration is read from the environment when omitted.
    """
    store = store or InMemoryLogisticsStore()
    rates = rates or PricingRates()
    workflow_config = workflow_config or WorkflowConfig()
    if estimator is None:
        estimator = build_estimator(estimator_config or load_estimator_config(), rates)

    event_bus = EventBus()
    quotes = QuoteService(estimator, rates)
    resolver = NetworkAssignmentResolver(store, event_bus, workflow_config)
    workflow = OrderWorkflowEngine(store, quotes, resolver, event_bus, workflow_config)

    payments = PaymentCoordinator(store, payment_provider or InMemoryPaymentProvider())
    payments.register(event_bus)
    notifications = NotificationDispatcher(notification_sink or LoggingNotificationSink())
    notifications.register(event_bus)

    logger.info(f"Logistics services ready (estimator: {type(estimator).__name__})")
    return LogisticsContainer(
        store=store,
        event_bus=event_bus,
        quotes=quotes,
        resolver=resolver,
        workflow=workflow,
        payments=payments,
        notifications=notifications,
        analytics=AnalyticsAggregator(store),
    )

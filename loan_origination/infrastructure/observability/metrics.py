"""Prometheus metrics for application flow, affordability, compliance and signing"""

from prometheus_client import Counter, Histogram

# Application lifecycle
applications_created_counter = Counter(
    "loan_applications_created_total",
    "Draft loan applications created",
    ["channel"],  # Web | Conversational
)

steps_advanced_counter = Counter(
    "loan_application_steps_total",
    "Wizard steps recorded",
    ["step"],
)

transitions_counter = Counter(
    "loan_application_transitions_total",
    "Loan application status transitions",
    ["to_status"],
)

# Affordability
assessment_counter = Counter(
    "affordability_assessments_total",
    "Affordability assessments computed",
    ["status"],  # Affordable | LimitedAffordability | NotAffordable
)

# Compliance
compliance_failure_counter = Counter(
    "compliance_failures_total",
    "Compliance checks that failed",
    ["code"],
)

# Signing
credentials_issued_counter = Counter(
    "signing_credentials_issued_total",
    "Signing PINs issued",
)

verification_counter = Counter(
    "signing_verifications_total",
    "Signing PIN verification outcomes",
    ["outcome"],  # signed | mismatch | expired | attempts_exceeded | missing | already_signed
)

# Messaging gateway
messaging_failures_counter = Counter(
    "messaging_delivery_failures_total",
    "Outbound messages the gateway failed to deliver",
    ["kind"],  # pin | confirmation
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_assessment(status: str) -> None:
    assessment_counter.labels(status=status).inc()


def record_transition(to_status: str) -> None:
    transitions_counter.labels(to_status=to_status).inc()


def record_verification(outcome: str) -> None:
    """Record a PIN verification outcome for monitoring brute-force and expiry rates"""
    verification_counter.labels(outcome=outcome).inc()

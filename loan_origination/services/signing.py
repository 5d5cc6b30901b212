"""
Contract generation and PIN-based signing.

Contract lifecycle: Draft → Sent → Signed, with Draft/Sent → Expired checked
lazily on access. A signed contract moves its application to Disbursed and
opens the cooling-off window.
"""

import logging
import uuid
from datetime import datetime
from typing import Callable, List, Optional
from sqlalchemy.orm import Session

from loan_origination.config import settings
from loan_origination.domain.credentials import (
    CONTRACT_VALIDITY_DAYS,
    MAX_FAILED_ATTEMPTS,
    PIN_TTL_MINUTES,
    generate_pin,
    hash_pin,
    verify_pin,
)
from loan_origination.domain.exceptions import (
    AlreadySignedError,
    AttemptsExceededError,
    CoolingOffExpiredError,
    CredentialExpiredError,
    ExternalDeliveryFailedError,
    InvalidCredentialError,
    InvalidStateTransitionError,
    NotFoundError,
)
from loan_origination.domain.models import (
    CREDIT_AGREEMENT,
    AuditAction,
    ContractStatus,
    IssuedCredential,
    LoanStatus,
)
from loan_origination.infrastructure.clients.messaging import MessagingClient
from loan_origination.infrastructure.database.models import Contract, LoanCancellation, SigningCredential
from loan_origination.infrastructure.database.repositories import (
    AuditRepository,
    CancellationRepository,
    ContractRepository,
    CredentialRepository,
    LoanApplicationRepository,
)
from loan_origination.infrastructure.observability.logging import log_signing_event, log_transition
from loan_origination.infrastructure.observability.metrics import (
    credentials_issued_counter,
    messaging_failures_counter,
    record_transition,
    record_verification,
)
from loan_origination.services.compliance import ComplianceValidator
from loan_origination.services.unit_of_work import commit
from loan_origination.utils.date_utils import days_from, is_past, minutes_from, utcnow

SIGNING_METHOD = "ConversationalPIN"

CONFIRMATION_MESSAGE = (
    "Contract signed successfully.\n\n"
    "Your loan agreement has been digitally signed and is now being processed for disbursement. "
    "You will receive a confirmation once the funds are transferred."
)


class SigningWorkflow:
    """Issues and verifies one-time signing PINs for credit agreements"""

    def __init__(
        self,
        db: Session,
        messaging: MessagingClient,
        compliance: Optional[ComplianceValidator] = None,
        clock: Callable[[], datetime] = utcnow,
        expose_pin: Optional[bool] = None,
        pin_template: Optional[str] = None,
    ):
        self.db = db
        self.messaging = messaging
        self.clock = clock
        self.compliance = compliance or ComplianceValidator(db)
        self.expose_pin = settings.expose_signing_pin if expose_pin is None else expose_pin
        self.pin_template = pin_template or settings.signing_pin_template
        self.applications = LoanApplicationRepository(db)
        self.contracts = ContractRepository(db)
        self.credentials = CredentialRepository(db)
        self.cancellations = CancellationRepository(db)
        self.audit = AuditRepository(db)

    # -------------------------------------------------------------- contracts

    def generate_contract(self, application_id: uuid.UUID, consumer_id: str) -> Contract:
        """
        Create the credit agreement for an approved application.

        Returns the existing agreement when one that is not cancelled exists.
        """
        application = self.applications.get_owned(application_id, consumer_id)
        if application is None:
            raise NotFoundError("Application not found")
        if application.status != LoanStatus.APPROVED:
            raise InvalidStateTransitionError("Loan application must be approved before generating a contract")

        existing = self.contracts.find_active_agreement(application.id, CREDIT_AGREEMENT)
        if existing is not None:
            return existing

        now = self.clock()
        contract = self.contracts.save(
            Contract(
                id=uuid.uuid4(),
                loan_application_id=application.id,
                consumer_id=consumer_id,
                contract_type=CREDIT_AGREEMENT,
                content_ref=f"contracts/{application.id}/credit-agreement-v1",
                status=ContractStatus.DRAFT,
                created_at=now,
                expires_at=days_from(now, CONTRACT_VALIDITY_DAYS),
                version=1,
            )
        )
        self.audit.record(
            "Contract",
            contract.id,
            AuditAction.CONTRACT_GENERATED,
            consumer_id,
            {"loan_application_id": str(application.id)},
        )
        commit(self.db)

        logging.info(
            "Contract generated",
            extra={"contract_id": str(contract.id), "application_id": str(application.id)},
        )
        return contract

    def get_contract(self, contract_id: uuid.UUID, consumer_id: str) -> Contract:
        contract = self.contracts.get_owned(contract_id, consumer_id)
        if contract is None:
            raise NotFoundError("Contract not found")
        if self._expire_if_stale(contract):
            commit(self.db)
        return contract

    def list_contracts(self, consumer_id: str) -> List[Contract]:
        return self.contracts.list_by_owner(consumer_id)

    # ------------------------------------------------------------- credentials

    def issue_credential(
        self,
        contract_id: uuid.UUID,
        consumer_id: str,
        destination: str,
        signer_name: Optional[str] = None,
    ) -> IssuedCredential:
        """
        Generate a fresh signing PIN and send it to the consumer.

        Only the salted hash is stored. Re-issuing replaces the previous PIN and
        resets the attempt counter. Delivery failures are logged; the PIN stays
        valid and the caller still gets a successful result.

        Raises:
            NotFoundError: contract missing or not owned
            AlreadySignedError: contract already signed
            CredentialExpiredError: contract has expired
            InvalidStateTransitionError: contract was cancelled
        """
        contract = self.contracts.get_owned(contract_id, consumer_id)
        if contract is None:
            raise NotFoundError("Contract not found")
        if contract.status == ContractStatus.SIGNED:
            raise AlreadySignedError("Contract is already signed")
        if contract.status == ContractStatus.CANCELLED:
            raise InvalidStateTransitionError("Contract has been cancelled")
        if contract.status == ContractStatus.EXPIRED:
            raise CredentialExpiredError("Contract has expired")
        if self._expire_if_stale(contract):
            commit(self.db)
            raise CredentialExpiredError("Contract has expired")

        now = self.clock()
        pin = generate_pin()
        pin_hash, salt = hash_pin(pin)

        credential = self.credentials.get_for_contract(contract.id)
        if credential is None:
            credential = SigningCredential(
                id=uuid.uuid4(),
                contract_id=contract.id,
                consumer_id=consumer_id,
                method=SIGNING_METHOD,
                signer_name=signer_name,
            )
        credential.pin_hash = pin_hash
        credential.salt = salt
        credential.destination = destination
        credential.issued_at = now
        credential.expires_at = minutes_from(now, PIN_TTL_MINUTES)
        credential.failed_attempts = 0
        credential.is_valid = False
        self.credentials.save(credential)

        contract.status = ContractStatus.SENT
        contract.sent_at = now
        commit(self.db)

        credentials_issued_counter.inc()
        log_signing_event(contract.id, consumer_id, "issued", expires_at=credential.expires_at.isoformat())

        delivered = self._deliver(
            "pin",
            lambda: self.messaging.send_template(destination, self.pin_template, [pin]),
            contract.id,
        )

        return IssuedCredential(
            contract_id=str(contract.id),
            destination=destination,
            expires_at=credential.expires_at,
            delivered=delivered,
            pin=pin if self.expose_pin else None,
        )

    def verify_credential(
        self,
        contract_id: uuid.UUID,
        consumer_id: str,
        code: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Contract:
        """
        Check a supplied PIN and, on a match, sign the contract.

        Checks run in a fixed order: missing credential, already signed,
        contract state and expiry, expired PIN, attempts exhausted, then the
        hash comparison.

        Raises:
            NotFoundError: no PIN was issued for this contract and consumer
            AlreadySignedError: PIN already used to sign
            InvalidStateTransitionError: contract was cancelled
            CredentialExpiredError: contract past its expiry, or PIN older than its time-to-live
            AttemptsExceededError: too many failed attempts on this PIN
            InvalidCredentialError: PIN mismatch, carrying the remaining attempts
        """
        credential = self.credentials.get_for_contract(contract_id, consumer_id)
        if credential is None:
            record_verification("missing")
            raise NotFoundError("Signature record not found. Please request a new signing PIN.")
        if credential.is_valid:
            record_verification("already_signed")
            raise AlreadySignedError("Contract is already signed.")

        contract = credential.contract
        if contract.status == ContractStatus.SIGNED:
            record_verification("already_signed")
            raise AlreadySignedError("Contract is already signed.")
        if contract.status == ContractStatus.CANCELLED:
            raise InvalidStateTransitionError("Contract has been cancelled")
        if contract.status == ContractStatus.EXPIRED or self._expire_if_stale(contract):
            commit(self.db)
            record_verification("expired")
            raise CredentialExpiredError("Contract has expired")

        now = self.clock()
        if is_past(credential.expires_at, now):
            record_verification("expired")
            raise CredentialExpiredError("PIN has expired. Please request a new signing PIN.")
        if credential.failed_attempts >= MAX_FAILED_ATTEMPTS:
            record_verification("attempts_exceeded")
            raise AttemptsExceededError("Too many failed attempts. Please request a new signing PIN.")

        if not verify_pin(code, credential.pin_hash, credential.salt):
            failed = self.credentials.increment_failed_attempts(credential)
            commit(self.db)
            record_verification("mismatch")
            log_signing_event(contract_id, consumer_id, "mismatch", failed_attempts=failed)
            raise InvalidCredentialError(max(MAX_FAILED_ATTEMPTS - failed, 0))

        credential.is_valid = True
        credential.signed_at = now
        credential.signer_id = consumer_id
        credential.ip_address = ip_address
        credential.user_agent = user_agent
        credential.audit_metadata = {"signedAt": now.isoformat(), "method": credential.method}

        contract.status = ContractStatus.SIGNED
        contract.signed_at = now

        application = contract.loan_application
        from_status = application.status
        application.status = LoanStatus.DISBURSED
        application.signed_at = now

        self.audit.record(
            "Contract",
            contract.id,
            AuditAction.CONTRACT_SIGNED,
            consumer_id,
            {"ip_address": ip_address, "method": credential.method},
        )
        commit(self.db)

        record_verification("signed")
        record_transition(LoanStatus.DISBURSED.value)
        log_signing_event(contract.id, consumer_id, "signed")
        log_transition(application.id, consumer_id, from_status.value, LoanStatus.DISBURSED.value)

        self._deliver(
            "confirmation",
            lambda: self.messaging.send_text(credential.destination, CONFIRMATION_MESSAGE),
            contract.id,
        )
        return contract

    # ------------------------------------------------------------ cooling-off

    def is_within_cooling_off(self, application_id: uuid.UUID) -> bool:
        """True while a signed loan may still be cancelled without penalty"""
        config = self.compliance.configuration()
        if not config.allow_cooling_off_cancellation:
            return False

        application = self.applications.get(application_id)
        if application is None or application.signed_at is None:
            return False

        return self.clock() <= days_from(application.signed_at, config.cooling_off_period_days)

    def cooling_off_status(self, application_id: uuid.UUID, consumer_id: str) -> bool:
        """Cooling-off window for an application the consumer owns"""
        application = self.applications.get_owned(application_id, consumer_id)
        if application is None:
            raise NotFoundError("Loan application not found")
        return self.is_within_cooling_off(application.id)

    def cancel_within_cooling_off(
        self, application_id: uuid.UUID, consumer_id: str, reason: str
    ) -> LoanCancellation:
        """
        Cancel a signed loan inside the cooling-off window.

        Raises:
            NotFoundError: application missing or not owned
            CoolingOffExpiredError: window closed, cancellation disabled, or loan never signed
        """
        application = self.applications.get_owned(application_id, consumer_id)
        if application is None:
            raise NotFoundError("Loan application not found")
        if not self.is_within_cooling_off(application.id):
            raise CoolingOffExpiredError("Cooling-off period has expired")

        cancellation = self.cancellations.record(application.id, consumer_id, reason)
        cancellation.cancelled_at = self.clock()

        from_status = application.status
        application.status = LoanStatus.CANCELLED
        self.audit.record(
            "LoanApplication",
            application.id,
            AuditAction.LOAN_CANCELLED,
            consumer_id,
            {"reason": reason, "within_cooling_off": True},
        )
        commit(self.db)

        record_transition(LoanStatus.CANCELLED.value)
        log_transition(application.id, consumer_id, from_status.value, LoanStatus.CANCELLED.value)
        return cancellation

    # ---------------------------------------------------------------- helpers

    def _expire_if_stale(self, contract: Contract) -> bool:
        """Persist Expired on an unsigned contract past its expiry; caller commits"""
        if contract.status in (ContractStatus.DRAFT, ContractStatus.SENT) and is_past(
            contract.expires_at, self.clock()
        ):
            contract.status = ContractStatus.EXPIRED
            log_signing_event(contract.id, contract.consumer_id, "contract_expired")
            return True
        return False

    def _deliver(self, kind: str, send: Callable[[], None], contract_id: uuid.UUID) -> bool:
        try:
            send()
        except ExternalDeliveryFailedError as e:
            messaging_failures_counter.labels(kind=kind).inc()
            logging.error(
                "Message delivery failed",
                extra={"kind": kind, "contract_id": str(contract_id), "error": str(e)},
            )
            return False
        return True

"""
Bridge executor for CCTP burn-and-mint transfers.

Drives one BridgeRequest through its phases:
- Balance check on the source chain
- USDC approval for the TokenMessenger
- depositForBurn and MessageSent extraction
- Attestation polling
- receiveMessage on the destination chain

Phase order is strict. Reverts are never retried; transient RPC errors
are retried by the configured RetryStrategy.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from ...logging_config import transfer_context
from ...providers.base import (
    ChainGateway,
    Signer,
    TransactionHandle,
    TransactionIntent,
    TransactionReceipt,
)
from ..recovery import RetryStrategy, ValidationError
from .attestation import AttestationRejected, AttestationWaiter, AttestationWaitTimeout
from .chains import ChainConfig, ChainRegistry
from .encoding import (
    MESSAGE_SENT_TOPIC,
    encode_approve,
    encode_deposit_for_burn,
    encode_receive_message,
    is_valid_address,
    message_hash,
    transaction_hash,
)
from .errors import (
    ApprovalFailedError,
    AttestationFailedError,
    AttestationTimeoutError,
    BalanceCheckError,
    BridgeError,
    BurnFailedError,
    InsufficientBalanceError,
    MintFailedError,
)
from .models import BridgeExecution, BridgePhase, BridgeRequest

logger = logging.getLogger(__name__)

# Phase attempted next from a given phase, used to attribute unexpected errors
_NEXT_PHASE: Dict[BridgePhase, BridgePhase] = {
    BridgePhase.PENDING: BridgePhase.BALANCE_CHECKED,
    BridgePhase.BALANCE_CHECKED: BridgePhase.APPROVED,
    BridgePhase.APPROVED: BridgePhase.BURNED,
    BridgePhase.BURNED: BridgePhase.ATTESTING,
    BridgePhase.ATTESTING: BridgePhase.MINTED,
}

_ALREADY_KNOWN = ("already known", "known transaction", "already imported")


def _is_already_known(error: Exception) -> bool:
    message = str(error).lower()
    return any(marker in message for marker in _ALREADY_KNOWN)


class BridgeExecutor:
    """
    Runs the approve -> burn -> attest -> mint state machine.

    Each BridgeExecution is owned by the call driving it; the executor
    itself holds no per-transfer state and can run many transfers
    concurrently.
    """

    def __init__(
        self,
        chains: ChainRegistry,
        gateway: ChainGateway,
        signer: Signer,
        waiter: AttestationWaiter,
        *,
        confirmation_depth: int = 1,
        confirmation_timeout_seconds: float = 300,
        retry: Optional[RetryStrategy] = None,
    ) -> None:
        self.chains = chains
        self.gateway = gateway
        self.signer = signer
        self.waiter = waiter
        self.confirmation_depth = confirmation_depth
        self.confirmation_timeout_seconds = confirmation_timeout_seconds
        self.retry = retry or RetryStrategy()

    @classmethod
    def from_settings(
        cls,
        config: Any,
        chains: ChainRegistry,
        gateway: ChainGateway,
        signer: Signer,
        waiter: AttestationWaiter,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ) -> "BridgeExecutor":
        return cls(
            chains,
            gateway,
            signer,
            waiter,
            confirmation_depth=config.confirmation_depth,
            confirmation_timeout_seconds=config.confirmation_timeout_seconds,
            retry=RetryStrategy.from_settings(config, sleep=sleep),
        )

    def validate(self, request: BridgeRequest) -> None:
        """Reject malformed requests before any I/O."""
        source = self.chains.normalize(request.source_chain)
        target = self.chains.normalize(request.target_chain)
        if source == target:
            raise ValidationError("Source and target chain must differ", field_name="target_chain")
        if request.amount <= 0:
            raise ValidationError("Amount must be positive", field_name="amount")
        if not is_valid_address(request.recipient):
            raise ValidationError(f"Invalid recipient address: {request.recipient}", field_name="recipient")
        if not is_valid_address(request.sender):
            raise ValidationError(f"Invalid sender address: {request.sender}", field_name="sender")

    async def execute(
        self,
        request: BridgeRequest,
        execution: Optional[BridgeExecution] = None,
    ) -> BridgeExecution:
        """
        Run ``request`` to a terminal phase.

        Args:
            request: The transfer to perform
            execution: Optional pre-created record (lets callers observe
                progress while the transfer is in flight)

        Returns:
            The execution in MINTED or FAILED phase. Bridge failures are
            recorded on the execution, not raised; ValidationError is raised.
        """
        self.validate(request)
        execution = execution or BridgeExecution(request=request)
        source = self.chains.get(request.source_chain)
        target = self.chains.get(request.target_chain)

        with transfer_context(
            execution_id=execution.execution_id,
            source_chain=source.key,
            target_chain=target.key,
        ):
            logger.info(
                "Bridge %s starting: %s %s -> %s",
                execution.execution_id,
                request.amount,
                source.key,
                target.key,
            )

            try:
                await self._check_balance(execution, source)
                await self._approve(execution, source)
                await self._burn(execution, source, target)
                await self._attest_and_mint(execution, source, target)
            except BridgeError as e:
                self._fail(execution, e)
            except Exception as e:
                logger.exception("Bridge %s hit an unexpected error", execution.execution_id)
                self._fail(
                    execution,
                    BridgeError(
                        f"Unexpected error: {e}",
                        chain=source.key,
                        amount=request.amount,
                        cause=e,
                        phase=_NEXT_PHASE.get(execution.phase, execution.phase),
                    ),
                )

        return execution

    async def resume(self, execution: BridgeExecution) -> BridgeExecution:
        """
        Retry attestation and mint for a stuck execution.

        Operator-triggered only; nothing calls this automatically.
        """
        if not execution.is_stuck:
            raise ValidationError(
                f"Execution {execution.execution_id} is not stuck (phase={execution.phase.value})",
                field_name="execution_id",
            )

        request = execution.request
        source = self.chains.get(request.source_chain)
        target = self.chains.get(request.target_chain)
        with transfer_context(
            execution_id=execution.execution_id,
            source_chain=source.key,
            target_chain=target.key,
            message_hash=execution.message_hash,
        ):
            logger.info("Bridge %s resuming from %s", execution.execution_id, execution.failed_phase)

            execution.error = None
            execution.failed_phase = None
            try:
                await self._attest_and_mint(execution, source, target)
            except BridgeError as e:
                self._fail(execution, e)
            except Exception as e:
                logger.exception("Bridge %s hit an unexpected error on resume", execution.execution_id)
                self._fail(
                    execution,
                    BridgeError(
                        f"Unexpected error: {e}",
                        chain=target.key,
                        amount=request.amount,
                        tx_hash=execution.burn_tx_hash,
                        cause=e,
                        phase=_NEXT_PHASE.get(execution.phase, execution.phase),
                    ),
                )
        return execution

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    async def _check_balance(self, execution: BridgeExecution, source: ChainConfig) -> None:
        request = execution.request
        try:
            available = await self.retry.execute(
                lambda: self.gateway.get_balance(source.key, request.sender),
                operation_name=f"get_balance[{source.key}]",
            )
        except Exception as e:
            raise BalanceCheckError(
                f"Could not read balance on {source.key}: {e}",
                chain=source.key,
                amount=request.amount,
                cause=e,
            ) from e

        if available < request.amount:
            raise InsufficientBalanceError(
                f"Insufficient USDC on {source.key}: have {available}, need {request.amount}",
                chain=source.key,
                amount=request.amount,
                available=available,
            )

        self._transition(execution, BridgePhase.BALANCE_CHECKED, source.key)

    async def _approve(self, execution: BridgeExecution, source: ChainConfig) -> None:
        request = execution.request
        intent = TransactionIntent(
            chain=source.key,
            sender=request.sender,
            to=source.usdc,
            data=encode_approve(source.token_messenger, request.amount),
            key_id=request.credential.key_id,
            description=f"approve {request.amount} USDC for TokenMessenger",
        )
        receipt = await self._send(execution, source, intent, "approve", ApprovalFailedError)
        execution.source_fee_wei += receipt.fee_wei
        self._transition(execution, BridgePhase.APPROVED, source.key)

    async def _burn(self, execution: BridgeExecution, source: ChainConfig, target: ChainConfig) -> None:
        request = execution.request
        intent = TransactionIntent(
            chain=source.key,
            sender=request.sender,
            to=source.token_messenger,
            data=encode_deposit_for_burn(
                amount=request.amount,
                destination_domain=target.domain,
                mint_recipient=request.recipient,
                burn_token=source.usdc,
            ),
            key_id=request.credential.key_id,
            description=f"depositForBurn {request.amount} USDC to domain {target.domain}",
        )
        receipt = await self._send(execution, source, intent, "burn", BurnFailedError)
        execution.source_fee_wei += receipt.fee_wei

        try:
            logs = await self.gateway.get_logs(receipt, MESSAGE_SENT_TOPIC)
        except Exception as e:
            raise BurnFailedError(
                f"Could not decode MessageSent log: {e}",
                chain=source.key,
                amount=request.amount,
                tx_hash=receipt.tx_hash,
                cause=e,
            ) from e

        fields = next((log.fields for log in logs if log.fields.get("message_bytes")), None)
        if fields is None:
            raise BurnFailedError(
                "MessageSent event missing from burn receipt",
                chain=source.key,
                amount=request.amount,
                tx_hash=receipt.tx_hash,
            )

        execution.message_bytes = fields["message_bytes"]
        execution.message_hash = fields.get("message_hash") or message_hash(fields["message_bytes"])
        self._transition(execution, BridgePhase.BURNED, source.key, detail=execution.message_hash)

    async def _attest_and_mint(
        self,
        execution: BridgeExecution,
        source: ChainConfig,
        target: ChainConfig,
    ) -> None:
        request = execution.request
        self._transition(execution, BridgePhase.ATTESTING, source.key)

        if execution.attestation is None:
            execution.attestation = await self._await_attestation(execution, source)
        try:
            calldata = encode_receive_message(execution.message_bytes, execution.attestation)
        except ValueError as e:
            # Fetched again on the next resume
            execution.attestation = None
            raise AttestationFailedError(
                f"Malformed attestation for {execution.message_hash}: {e}",
                chain=source.key,
                amount=request.amount,
                tx_hash=execution.burn_tx_hash,
                cause=e,
            ) from e

        intent = TransactionIntent(
            chain=target.key,
            sender=request.sender,
            to=target.message_transmitter,
            data=calldata,
            key_id=request.credential.key_id,
            description="receiveMessage",
        )
        receipt = await self._send(execution, target, intent, "mint", MintFailedError)
        execution.destination_fee_wei += receipt.fee_wei
        self._transition(execution, BridgePhase.MINTED, target.key)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _await_attestation(self, execution: BridgeExecution, source: ChainConfig) -> str:
        request = execution.request
        try:
            return await self.waiter.wait(execution.message_hash)
        except AttestationRejected as e:
            raise AttestationFailedError(
                str(e), chain=source.key, amount=request.amount, tx_hash=execution.burn_tx_hash, cause=e
            ) from e
        except AttestationWaitTimeout as e:
            raise AttestationTimeoutError(
                str(e), chain=source.key, amount=request.amount, tx_hash=execution.burn_tx_hash, cause=e
            ) from e
        except Exception as e:
            raise AttestationTimeoutError(
                f"Attestation polling gave up: {e}",
                chain=source.key,
                amount=request.amount,
                tx_hash=execution.burn_tx_hash,
                cause=e,
            ) from e

    async def _send(
        self,
        execution: BridgeExecution,
        chain: ChainConfig,
        intent: TransactionIntent,
        label: str,
        error_cls: type,
    ) -> TransactionReceipt:
        """Sign, submit and confirm one transaction; any failure becomes ``error_cls``."""
        request = execution.request
        tx_hash: Optional[str] = None
        try:
            signed = await self.signer.sign(chain.key, intent)
            handle = await self.retry.execute(
                self._submitter(chain, signed),
                operation_name=f"submit_{label}[{chain.key}]",
            )
            tx_hash = handle.tx_hash
            setattr(execution, f"{label}_tx_hash", tx_hash)
            execution.explorer_links[label] = chain.explorer_tx_url(tx_hash)

            return await self.gateway.wait_for_confirmation(
                handle,
                confirmations=self.confirmation_depth,
                timeout_seconds=self.confirmation_timeout_seconds,
            )
        except Exception as e:
            raise error_cls(
                f"{label} transaction failed on {chain.key}: {e}",
                chain=chain.key,
                amount=request.amount,
                tx_hash=tx_hash or getattr(e, "tx_hash", None),
                cause=e,
            ) from e

    def _submitter(self, chain: ChainConfig, signed: str) -> Callable[[], Awaitable[TransactionHandle]]:
        """Submit callable for the retry loop.

        A retried submit may find the payload already in the mempool from an
        earlier attempt that timed out; that is treated as accepted.
        """
        attempts = 0

        async def submit() -> TransactionHandle:
            nonlocal attempts
            attempts += 1
            try:
                return await self.gateway.submit_transaction(chain.key, signed)
            except Exception as e:
                if attempts > 1 and _is_already_known(e):
                    logger.info("Resubmitted transaction already known on %s", chain.key)
                    return TransactionHandle(chain=chain.key, tx_hash=transaction_hash(signed))
                raise

        return submit

    def _transition(
        self,
        execution: BridgeExecution,
        to_phase: BridgePhase,
        chain: str,
        detail: Optional[str] = None,
    ) -> None:
        from_phase = execution.phase
        execution.advance(to_phase, detail=detail)
        logger.info(
            "Bridge %s: %s -> %s on %s",
            execution.execution_id,
            from_phase.value,
            to_phase.value,
            chain,
        )

    def _fail(self, execution: BridgeExecution, error: BridgeError) -> None:
        logger.error(
            "Bridge %s failed in %s on %s (%s): %s",
            execution.execution_id,
            error.phase.value,
            error.chain,
            error.kind.value,
            error.message,
        )
        if execution.phase == BridgePhase.FAILED:
            execution.error = error.to_dict()
            execution.failed_phase = error.phase
            return
        execution.fail(error.to_dict(), error.phase)

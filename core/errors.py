"""Domain errors raised by the deal lifecycle and settlement services.

Every error carries a stable machine code and an HTTP status so the API layer can
render it without knowing the concrete class. Services raise these inside
@transaction.atomic blocks, so raising always rolls back the whole transition.
"""


class EscrowError(Exception):
	code = "escrow_error"
	http_status = 400

	def __init__(self, message: str = "", **details):
		super().__init__(message or self.code)
		self.message = message or self.code
		self.details = details

	def as_dict(self) -> dict:
		data = {"error": self.code, "message": self.message}
		if self.details:
			data["details"] = {k: str(v) for k, v in self.details.items()}
		return data


class ValidationError(EscrowError):
	"""Malformed or out-of-range input; the caller must correct it."""
	code = "validation_error"
	http_status = 400


class KycRequiredError(EscrowError):
	code = "kyc_required"
	http_status = 403


class PermissionDeniedError(EscrowError):
	code = "permission_denied"
	http_status = 403


class NotFoundError(EscrowError):
	code = "not_found"
	http_status = 404


class InvalidStateError(EscrowError):
	"""Operation attempted from the wrong lifecycle state (stale client view)."""
	code = "invalid_state"
	http_status = 409


class ConflictError(EscrowError):
	"""Lost a race on a shared record; refresh and retry the read-modify cycle."""
	code = "conflict"
	http_status = 409


class AlreadyAcceptedError(ConflictError):
	code = "already_accepted"


class InsufficientFundsError(EscrowError):
	code = "insufficient_funds"
	http_status = 402


class NoCapacityError(EscrowError):
	"""No active admin contact number; retry after an admin adds one."""
	code = "no_capacity"
	http_status = 503


class IrreversibleStateError(EscrowError):
	code = "irreversible_state"
	http_status = 409


class PaymentPendingError(EscrowError):
	"""OTP submitted before the merchant funded the remaining amount."""
	code = "payment_pending"
	http_status = 409

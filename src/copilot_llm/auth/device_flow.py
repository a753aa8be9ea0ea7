"""GitHub OAuth device authorization flow.

Obtains a long-lived GitHub identity token by showing the user a code to
enter at github.com/login/device and waiting for them to approve it.

The flow is a small state machine:

    REQUESTING_CODE -> AWAITING_APPROVAL -> EXCHANGING -> DONE

with terminal failures DENIED, TIMED_OUT, PROTOCOL_ERROR and CANCELLED. Each
token endpoint response is classified by classify_poll_response() using the
POLL_TRANSITIONS table, so the loop itself never inspects error strings.

Two interaction modes share the same machine and the same deadline:
- poll: sleep one interval between queries
- confirm: wait for the user to press Enter before each query

Usage:
    from copilot_llm.auth.device_flow import DeviceAuthorizationClient

    client = DeviceAuthorizationClient(auth_config)
    identity_token = client.authorize()
"""

import threading
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

import requests
from rich.console import Console
from rich.panel import Panel

from copilot_llm.config_schema import AuthConfig
from copilot_llm.core.errors import (
    AuthCancelledError,
    AuthDeniedError,
    AuthTimeoutError,
    CopilotLLMError,
    ErrorKind,
    ProtocolError,
)
from copilot_llm.core.http import describe_status, parse_json_object, send_with_retry
from copilot_llm.core.logging import get_logger, set_login_attempt_id

logger = get_logger(__name__)
console = Console(stderr=True)

DEVICE_CODE_GRANT_TYPE = "urn:ietf:params:oauth:grant-type:device_code"

# RFC 8628 section 3.2: clients must assume 5 seconds when no interval is sent
DEFAULT_POLL_INTERVAL_SECONDS = 5


class InteractionMode(str, Enum):
    """How the client waits between token endpoint queries."""

    POLL = "poll"
    CONFIRM = "confirm"


SUPPORTED_INTERACTION_MODES: tuple[InteractionMode, ...] = tuple(InteractionMode)


class DeviceFlowState(str, Enum):
    """States of a single device authorization attempt."""

    REQUESTING_CODE = "requesting_code"
    AWAITING_APPROVAL = "awaiting_approval"
    EXCHANGING = "exchanging"
    DONE = "done"
    DENIED = "denied"
    TIMED_OUT = "timed_out"
    PROTOCOL_ERROR = "protocol_error"
    CANCELLED = "cancelled"


TERMINAL_STATES = frozenset(
    {
        DeviceFlowState.DONE,
        DeviceFlowState.DENIED,
        DeviceFlowState.TIMED_OUT,
        DeviceFlowState.PROTOCOL_ERROR,
        DeviceFlowState.CANCELLED,
    }
)

# Provider error code -> (next state, intervals to wait before the next query)
POLL_TRANSITIONS: dict[str, tuple[DeviceFlowState, int]] = {
    "authorization_pending": (DeviceFlowState.AWAITING_APPROVAL, 1),
    "slow_down": (DeviceFlowState.AWAITING_APPROVAL, 2),
    "access_denied": (DeviceFlowState.DENIED, 0),
    "expired_token": (DeviceFlowState.TIMED_OUT, 0),
}

_FAILURE_STATES: dict[ErrorKind, DeviceFlowState] = {
    ErrorKind.PROTOCOL_ERROR: DeviceFlowState.PROTOCOL_ERROR,
    ErrorKind.AUTH_DENIED: DeviceFlowState.DENIED,
    ErrorKind.AUTH_TIMEOUT: DeviceFlowState.TIMED_OUT,
    ErrorKind.AUTH_CANCELLED: DeviceFlowState.CANCELLED,
}


@dataclass(frozen=True, slots=True)
class DeviceAuthorizationSession:
    """Codes and timing issued for one login attempt. Never persisted."""

    device_code: str
    user_code: str
    verification_uri: str
    interval: int
    expires_in: int
    expires_at: float

    def remaining(self, now: float) -> float:
        """Seconds left before the device code expires."""
        return max(0.0, self.expires_at - now)


@dataclass(frozen=True, slots=True)
class PollOutcome:
    """Classification of one token endpoint response."""

    state: DeviceFlowState
    access_token: str | None = None
    wait_intervals: int = 0
    new_interval: int | None = None
    status_code: int | None = None
    error_code: str | None = None
    error_description: str | None = None


def classify_poll_response(status_code: int, payload: dict | None) -> PollOutcome:
    """Map a token endpoint response onto the next state of the flow.

    Args:
        status_code: HTTP status of the response
        payload: Decoded JSON object, or None if the body was not a JSON object

    Returns:
        PollOutcome describing the transition
    """
    if not 200 <= status_code < 300:
        return PollOutcome(
            state=DeviceFlowState.PROTOCOL_ERROR,
            status_code=status_code,
            error_description=f"token endpoint returned HTTP {status_code}",
        )
    if payload is None:
        return PollOutcome(
            state=DeviceFlowState.PROTOCOL_ERROR,
            status_code=status_code,
            error_description="token endpoint returned a malformed body",
        )

    access_token = payload.get("access_token")
    if isinstance(access_token, str) and access_token:
        return PollOutcome(
            state=DeviceFlowState.EXCHANGING,
            access_token=access_token,
            status_code=status_code,
        )

    error_code = payload.get("error")
    error_description = payload.get("error_description")
    if not isinstance(error_description, str):
        error_description = None
    if not error_code:
        return PollOutcome(
            state=DeviceFlowState.PROTOCOL_ERROR,
            status_code=status_code,
            error_description="token endpoint returned neither access_token nor error",
        )
    if not isinstance(error_code, str):
        return PollOutcome(
            state=DeviceFlowState.PROTOCOL_ERROR,
            status_code=status_code,
            error_description=f"token endpoint returned a malformed error: {error_code!r}",
        )

    state, wait_intervals = POLL_TRANSITIONS.get(
        error_code, (DeviceFlowState.PROTOCOL_ERROR, 0)
    )
    new_interval = payload.get("interval") if error_code == "slow_down" else None
    if not isinstance(new_interval, int) or isinstance(new_interval, bool) or new_interval <= 0:
        new_interval = None

    return PollOutcome(
        state=state,
        wait_intervals=wait_intervals,
        new_interval=new_interval,
        status_code=status_code,
        error_code=error_code,
        error_description=error_description,
    )


def display_auth_prompt(session: DeviceAuthorizationSession, mode: InteractionMode) -> None:
    """Show the verification URL and user code.

    Args:
        session: The device authorization session to display
        mode: Interaction mode, which decides the closing instruction
    """
    if mode is InteractionMode.CONFIRM:
        waiting = "Press [bold]Enter[/bold] here once you have approved the request."
    else:
        waiting = "Waiting for authorization..."

    minutes = max(1, session.expires_in // 60)
    panel_content = (
        f"1. Open a browser and go to:\n\n"
        f"  [bold blue]{session.verification_uri}[/bold blue]\n\n"
        f"2. Enter this code: [bold green]{session.user_code}[/bold green]\n\n"
        f"The code expires in {minutes} minute(s). {waiting}"
    )

    console.print()
    console.print(
        Panel(
            panel_content,
            title="GitHub Copilot Login Required",
            border_style="bright_blue",
        )
    )
    console.print()


def confirm_on_console(timeout: float, cancel_event: threading.Event) -> bool:
    """Block until the user presses Enter, the timeout passes or the attempt is cancelled.

    Reading stdin cannot be interrupted, so the read runs on a daemon thread
    while this function waits on it in short slices.

    Returns:
        True if the user confirmed (or stdin is closed), False otherwise
    """
    done = threading.Event()

    def _read() -> None:
        try:
            console.input("[dim]Press Enter to check authorization status...[/dim]")
        except EOFError:
            logger.warning("stdin closed, continuing without confirmation")
        finally:
            done.set()

    threading.Thread(target=_read, name="device-flow-confirm", daemon=True).start()

    deadline = time.monotonic() + timeout
    while not done.is_set():
        if cancel_event.is_set():
            return False
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return False
        done.wait(min(remaining, 0.25))
    return True


class DeviceAuthorizationClient:
    """Runs the device flow against GitHub and returns an identity token.

    Attributes:
        config: Auth configuration (endpoints, client ID, scope, retries)
        interaction_mode: How to wait between token endpoint queries
        cancel_event: Setting this aborts any wait with AuthCancelledError
        state: State of the most recent attempt
        session: Device codes of the most recent attempt
    """

    def __init__(
        self,
        config: AuthConfig,
        http: requests.Session | None = None,
        interaction_mode: InteractionMode | str | None = None,
        presenter: Callable[[DeviceAuthorizationSession, InteractionMode], None] | None = None,
        confirmer: Callable[[float, threading.Event], bool] | None = None,
        cancel_event: threading.Event | None = None,
        clock: Callable[[], float] = time.time,
        retry_delays: list[float] | None = None,
    ):
        """Initialize the device flow client.

        Args:
            config: Auth configuration
            http: requests session to use (one is created if omitted)
            interaction_mode: Overrides config.interaction_mode
            presenter: Shows the URL and code (default: rich panel on stderr)
            confirmer: Waits for user confirmation in confirm mode
            cancel_event: External cancellation signal
            clock: Wall clock in seconds
            retry_delays: Backoff delays for transient network errors
        """
        self.config = config
        self.http = http or requests.Session()
        self.interaction_mode = InteractionMode(interaction_mode or config.interaction_mode)
        self.cancel_event = cancel_event or threading.Event()
        self.state: DeviceFlowState | None = None
        self.session: DeviceAuthorizationSession | None = None
        self._presenter = presenter or display_auth_prompt
        self._confirmer = confirmer or confirm_on_console
        self._clock = clock
        self._retry_delays = retry_delays

    def cancel(self) -> None:
        """Abort the attempt in progress (or the next one)."""
        self.cancel_event.set()

    def authorize(self) -> str:
        """Run one complete device authorization attempt.

        Returns:
            The GitHub identity token

        Raises:
            ProtocolError: Unexpected status or malformed response
            AuthDeniedError: The user declined
            AuthTimeoutError: The device code expired first
            AuthCancelledError: cancel_event was set
        """
        set_login_attempt_id(str(uuid.uuid4()))
        self.session = None
        try:
            self._transition(DeviceFlowState.REQUESTING_CODE)
            session = self.request_device_code()
            self.session = session

            self._transition(DeviceFlowState.AWAITING_APPROVAL)
            self._presenter(session, self.interaction_mode)

            identity_token = self._await_identity_token(session)
            self._transition(DeviceFlowState.DONE)
            logger.info("Device authorization complete")
            return identity_token
        except CopilotLLMError as e:
            failure_state = _FAILURE_STATES.get(e.kind, DeviceFlowState.PROTOCOL_ERROR)
            self._transition(failure_state, error=e.kind.value)
            raise
        finally:
            set_login_attempt_id(None)

    def request_device_code(self) -> DeviceAuthorizationSession:
        """Ask GitHub for a device code and user code.

        Raises:
            ProtocolError: On a non-2xx status or a response missing required fields
        """
        operation = "Device code request"
        response = send_with_retry(
            self.http,
            "POST",
            self.config.device_code_url,
            operation=operation,
            max_retries=self.config.max_retries,
            retry_delays=self._retry_delays,
            timeout=self.config.request_timeout_seconds,
            cancel_event=self.cancel_event,
            headers=self._headers(),
            json={"client_id": self.config.client_id, "scope": self.config.scope},
        )

        if not response.ok:
            logger.error("Device code request failed", status_code=response.status_code)
            raise ProtocolError(
                f"Failed to request device code: {describe_status(response)}. "
                "Check that auth.device_code_url and auth.client_id are correct.",
                status_code=response.status_code,
            )

        data = parse_json_object(response, operation)
        try:
            device_code = data["device_code"]
            user_code = data["user_code"]
            verification_uri = data["verification_uri"]
            expires_in = int(data["expires_in"])
            interval = int(data.get("interval") or DEFAULT_POLL_INTERVAL_SECONDS)
        except (KeyError, TypeError, ValueError) as e:
            raise ProtocolError(
                f"Device code response is missing or has an invalid field: {e}",
                status_code=response.status_code,
            ) from e

        if not device_code or not user_code or not verification_uri or expires_in <= 0:
            raise ProtocolError(
                "Device code response contained empty codes or a non-positive expiry",
                status_code=response.status_code,
            )

        session = DeviceAuthorizationSession(
            device_code=str(device_code),
            user_code=str(user_code),
            verification_uri=str(verification_uri),
            interval=max(1, interval),
            expires_in=expires_in,
            expires_at=self._clock() + expires_in,
        )
        logger.info(
            "Device code issued",
            verification_uri=session.verification_uri,
            interval=session.interval,
            expires_in=session.expires_in,
        )
        return session

    def poll_once(self, session: DeviceAuthorizationSession) -> PollOutcome:
        """Query the token endpoint once and classify the response."""
        response = send_with_retry(
            self.http,
            "POST",
            self.config.token_url,
            operation="Device token poll",
            max_retries=self.config.max_retries,
            retry_delays=self._retry_delays,
            timeout=self.config.request_timeout_seconds,
            cancel_event=self.cancel_event,
            headers=self._headers(),
            json={
                "client_id": self.config.client_id,
                "device_code": session.device_code,
                "grant_type": DEVICE_CODE_GRANT_TYPE,
            },
        )
        try:
            payload = response.json()
        except ValueError:
            payload = None
        if not isinstance(payload, dict):
            payload = None
        return classify_poll_response(response.status_code, payload)

    def _await_identity_token(self, session: DeviceAuthorizationSession) -> str:
        """Drive the AWAITING_APPROVAL state until a terminal outcome."""
        interval = session.interval
        next_query_at = self._clock() + interval
        polls = 0

        while True:
            if self.interaction_mode is InteractionMode.CONFIRM:
                self._await_confirmation(session)

            self._sleep_until(min(next_query_at, session.expires_at))
            if self._clock() >= session.expires_at:
                raise self._timeout_error(session)

            outcome = self.poll_once(session)
            polls += 1

            if outcome.state is DeviceFlowState.EXCHANGING:
                self._transition(DeviceFlowState.EXCHANGING, polls=polls)
                return outcome.access_token

            if outcome.state is DeviceFlowState.AWAITING_APPROVAL:
                if outcome.new_interval is not None:
                    interval = max(interval, outcome.new_interval)
                delay = interval * outcome.wait_intervals
                next_query_at = self._clock() + delay
                logger.debug(
                    "Authorization not granted yet",
                    error=outcome.error_code,
                    polls=polls,
                    next_query_in=delay,
                )
                continue

            raise self._error_for(outcome, session)

    def _await_confirmation(self, session: DeviceAuthorizationSession) -> None:
        """Block on the confirmer, bounded by the device code deadline."""
        self._check_cancelled()
        remaining = session.remaining(self._clock())
        if remaining <= 0:
            raise self._timeout_error(session)

        confirmed = self._confirmer(remaining, self.cancel_event)
        self._check_cancelled()
        if not confirmed:
            raise self._timeout_error(session)

    def _sleep_until(self, target: float) -> None:
        """Wait until ``target`` on the client clock unless cancelled."""
        self._check_cancelled()
        remaining = target - self._clock()
        if remaining > 0 and self.cancel_event.wait(remaining):
            self._check_cancelled()

    def _check_cancelled(self) -> None:
        if self.cancel_event.is_set():
            raise AuthCancelledError(
                "Device authorization was cancelled before it completed."
            )

    def _timeout_error(self, session: DeviceAuthorizationSession) -> AuthTimeoutError:
        return AuthTimeoutError(
            f"GitHub device authorization timed out after {session.expires_in}s. "
            "Please start the login again and approve the code before it expires."
        )

    def _error_for(
        self, outcome: PollOutcome, session: DeviceAuthorizationSession
    ) -> CopilotLLMError:
        """Build the exception for a terminal poll outcome."""
        if outcome.state is DeviceFlowState.DENIED:
            return AuthDeniedError(
                "GitHub authorization was denied by the user. "
                "Run the login again and approve the request."
            )
        if outcome.state is DeviceFlowState.TIMED_OUT:
            return self._timeout_error(session)

        detail = outcome.error_code or "unexpected response"
        if outcome.error_description:
            detail = f"{detail} - {outcome.error_description}"
        logger.error(
            "Device token poll failed",
            status_code=outcome.status_code,
            error=outcome.error_code,
            description=outcome.error_description,
        )
        return ProtocolError(
            f"OAuth error while polling for authorization: {detail}",
            status_code=outcome.status_code,
            error_code=outcome.error_code,
            error_description=outcome.error_description,
        )

    def _transition(self, new_state: DeviceFlowState, **context) -> None:
        logger.debug(
            "Device flow state changed",
            previous=self.state.value if self.state else None,
            state=new_state.value,
            **context,
        )
        self.state = new_state

    def _headers(self) -> dict[str, str]:
        return {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "User-Agent": self.config.user_agent,
        }

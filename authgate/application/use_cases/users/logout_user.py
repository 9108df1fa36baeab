"""Use-case for revoking the presented session or token."""

from __future__ import annotations

from authgate.application.services.session_issuer import SessionIssuer
from authgate.application.services.token_issuer import TokenIssuer
from authgate.domain.users.entities import AuthFlow, Credential, Identity


class LogoutUserUseCase:
    def __init__(self, *, sessions: SessionIssuer, tokens: TokenIssuer) -> None:
        self._sessions = sessions
        self._tokens = tokens

    def execute(self, credential: Credential | None) -> None:
        if credential is None or not credential.value:
            return
        if credential.flow is AuthFlow.SESSION:
            self._sessions.revoke(credential.value)
        else:
            self._tokens.revoke_plain_text(credential.value)

    def execute_all(self, identity: Identity) -> None:
        self._sessions.revoke_all(identity)
        self._tokens.revoke_all(identity)

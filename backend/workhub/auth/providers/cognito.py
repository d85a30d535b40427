"""Amazon Cognito identity provider.

Wraps the boto3 ``cognito-idp`` client so routes and services never see
botocore errors. Names travel in the standard ``given_name`` / ``family_name``
user attributes.
"""
from __future__ import annotations

import logging
from functools import lru_cache
from typing import Mapping

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from workhub.auth.cognito import (
    CognitoJWKSFetchError,
    CognitoVerificationError,
    verify_cognito_access_token,
)
from workhub.auth.errors import InvalidCredentials, InvalidToken, ProviderError, ProviderUnavailable
from workhub.auth.identity import ExternalIdentity
from workhub.auth.providers.base import IdentityProvider, SignInResult, SignUpResult
from workhub.core.config import settings

logger = logging.getLogger(__name__)

# Cognito codes that mean "the caller's credentials are wrong".
CREDENTIAL_ERROR_CODES = frozenset(
    {
        "NotAuthorizedException",
        "UserNotFoundException",
        "UserNotConfirmedException",
        "PasswordResetRequiredException",
    }
)
UNAVAILABLE_ERROR_CODES = frozenset({"InternalErrorException", "TooManyRequestsException"})


def _require_cognito_client_config() -> None:
    if not settings.COGNITO_REGION:
        raise RuntimeError("COGNITO_REGION is not configured")
    if not settings.COGNITO_APP_CLIENT_ID:
        raise RuntimeError("COGNITO_APP_CLIENT_ID is not configured")


@lru_cache(maxsize=1)
def _get_cognito_client():
    _require_cognito_client_config()
    return boto3.client("cognito-idp", region_name=settings.COGNITO_REGION)


def _translate_error(exc: ClientError) -> ProviderError:
    error = exc.response.get("Error", {})
    code = error.get("Code", "CognitoClientError")
    message = error.get("Message", str(exc))
    return ProviderError(code=code, message=message)


def _attributes(resp: dict) -> dict[str, str]:
    attributes = {attr["Name"]: attr["Value"] for attr in resp.get("UserAttributes", [])}
    if "sub" not in attributes and resp.get("Username"):
        attributes["sub"] = resp["Username"]
    return attributes


def identity_from_attributes(attributes: Mapping[str, str]) -> ExternalIdentity:
    return ExternalIdentity(
        id=attributes["sub"],
        email=(attributes.get("email") or "").strip(),
        metadata_first_name=attributes.get("given_name"),
        metadata_last_name=attributes.get("family_name"),
        provider="cognito",
        raw_claims=dict(attributes),
    )


class CognitoIdentityProvider(IdentityProvider):
    """Identity provider backed by a Cognito user pool app client."""

    def __init__(self, client=None) -> None:
        self._client = client

    @property
    def name(self) -> str:
        return "cognito"

    @property
    def client(self):
        if self._client is None:
            self._client = _get_cognito_client()
        return self._client

    def _get_user(self, access_token: str) -> ExternalIdentity:
        try:
            resp = self.client.get_user(AccessToken=access_token)
        except ClientError as exc:
            error = _translate_error(exc)
            if error.code in UNAVAILABLE_ERROR_CODES:
                raise ProviderUnavailable() from exc
            raise InvalidToken() from exc
        except BotoCoreError as exc:
            raise ProviderUnavailable() from exc

        attributes = _attributes(resp)
        if not attributes.get("sub"):
            raise InvalidToken("Token missing subject")
        return identity_from_attributes(attributes)

    def verify_token(self, token: str) -> ExternalIdentity:
        candidate = (token or "").strip()
        if not candidate:
            raise InvalidToken()

        try:
            verify_cognito_access_token(candidate)
        except CognitoJWKSFetchError as exc:
            raise ProviderUnavailable() from exc
        except CognitoVerificationError as exc:
            logger.info("Rejected Cognito token: %s", exc)
            raise InvalidToken() from exc

        return self._get_user(candidate)

    def _initiate_auth(self, email: str, password: str) -> dict:
        return self.client.initiate_auth(
            ClientId=settings.COGNITO_APP_CLIENT_ID,
            AuthFlow="USER_PASSWORD_AUTH",
            AuthParameters={
                "USERNAME": email,
                "PASSWORD": password,
            },
        )

    def sign_in(self, email: str, password: str) -> SignInResult:
        try:
            auth_result = self._initiate_auth(email, password)
        except ClientError as exc:
            error = _translate_error(exc)
            if error.code in UNAVAILABLE_ERROR_CODES:
                raise ProviderUnavailable() from exc
            raise InvalidCredentials(str(error)) from exc
        except BotoCoreError as exc:
            raise ProviderUnavailable() from exc

        # MFA and other challenges are not part of this flow: no session, no login.
        authentication = auth_result.get("AuthenticationResult") or {}
        access_token = authentication.get("AccessToken")
        if not access_token:
            raise InvalidCredentials()

        return SignInResult(identity=self._get_user(access_token), session_token=access_token)

    def sign_up(self, email: str, password: str, attrs: Mapping[str, str]) -> SignUpResult:
        user_attributes = [{"Name": "email", "Value": email}]
        if attrs.get("first_name"):
            user_attributes.append({"Name": "given_name", "Value": attrs["first_name"]})
        if attrs.get("last_name"):
            user_attributes.append({"Name": "family_name", "Value": attrs["last_name"]})

        try:
            resp = self.client.sign_up(
                ClientId=settings.COGNITO_APP_CLIENT_ID,
                Username=email,
                Password=password,
                UserAttributes=user_attributes,
            )
        except ClientError as exc:
            raise _translate_error(exc) from exc
        except BotoCoreError as exc:
            raise ProviderUnavailable() from exc

        user_sub = resp.get("UserSub")
        if not user_sub:
            raise ProviderError(code="invalid_response", message="Failed to create user")

        pending = SignUpResult(
            identity=ExternalIdentity(
                id=user_sub,
                email=email,
                metadata_first_name=attrs.get("first_name"),
                metadata_last_name=attrs.get("last_name"),
                provider="cognito",
            )
        )
        if not resp.get("UserConfirmed"):
            return pending

        # Auto-confirmed pools can hand out a session straight away.
        try:
            signed_in = self.sign_in(email, password)
        except InvalidCredentials:
            logger.warning("Cognito user %s confirmed but sign-in after sign-up failed", user_sub)
            return pending
        return SignUpResult(identity=signed_in.identity, session_token=signed_in.session_token)

# /carehome/utils/decorators.py
from dataclasses import dataclass
from functools import wraps
from typing import Optional

from flask import current_app, g, jsonify, make_response, request
from werkzeug.exceptions import HTTPException

from carehome.extensions import db
from carehome.utils.audit_util import AuditCategory, AuditOutcome
from carehome.utils.errors import AppError
from carehome.utils.permission_util import ReasonCode
from carehome.utils.principal_util import Principal, ResolutionError
from carehome.utils.token_util import ExpiredToken, TokenError

MUTATING_METHODS = ('POST', 'PUT', 'PATCH', 'DELETE')


@dataclass(frozen=True)
class Proceed:
    principal: Principal


@dataclass(frozen=True)
class Reject:
    status: int
    reason: ReasonCode
    actor_id: Optional[str] = None
    principal: Optional[Principal] = None

    def to_response(self):
        if self.status == 401:
            # Only expiry is told apart, so the client knows to refresh.
            code = 'token_expired' if self.reason is ReasonCode.TOKEN_EXPIRED else 'unauthenticated'
            response = jsonify({'error': 'Authentication required', 'code': code})
            response.status_code = 401
            response.headers['WWW-Authenticate'] = 'Bearer'
            return response
        response = jsonify({'error': 'Permission denied'})
        response.status_code = self.status
        return response


def extract_bearer_token(req) -> Optional[str]:
    """Token from ``Authorization: Bearer ...``, falling back to the access_token cookie."""
    header = req.headers.get('Authorization', '')
    if header.startswith('Bearer '):
        token = header[len('Bearer '):].strip()
        if token:
            return token
    return req.cookies.get('access_token') or None


class RequestGate:
    """Authenticate, resolve, authorize, run and audit one request.

    Each stage returns ``Proceed`` or ``Reject``; the first ``Reject`` ends
    the request. Every outcome after a token has been presented produces
    exactly one audit record.
    """

    def __init__(self, codec, resolver, policy, recorder):
        self.codec = codec
        self.resolver = resolver
        self.policy = policy
        self.recorder = recorder

    def verify_token(self, token):
        try:
            return self.codec.verify(token), None
        except ExpiredToken:
            return None, Reject(401, ReasonCode.TOKEN_EXPIRED)
        except TokenError:
            return None, Reject(401, ReasonCode.TOKEN_INVALID)

    def resolve_principal(self, claims):
        try:
            return Proceed(self.resolver.principal_for(claims))
        except ResolutionError as exc:
            return Reject(401, exc.reason, actor_id=exc.claimed_id)

    def authorize(self, principal, capability=None, resource=None):
        decision = self.policy.evaluate(principal, capability, resource)
        if not decision.allowed:
            return Reject(403, decision.reason, actor_id=principal.id, principal=principal)
        return Proceed(principal)

    def guard(self, view, args, kwargs, action, target_type=None, capability=None,
              resource=None, category=None):
        category = category or (
            AuditCategory.RESOURCE_MUTATION if request.method in MUTATING_METHODS
            else AuditCategory.RESOURCE_ACCESS
        )
        target_id = next(iter(kwargs.values()), None)

        # Stage 1: no token, nobody to attribute an audit record to.
        token = extract_bearer_token(request)
        if token is None:
            current_app.logger.warning(f"Unauthenticated request to {request.path} from {request.remote_addr}")
            return Reject(401, ReasonCode.TOKEN_MISSING).to_response()

        # Stage 2: signature and expiry.
        claims, rejection = self.verify_token(token)
        if rejection is not None:
            return self._deny(rejection, action, target_type, target_id)

        # Stage 3: current account state.
        try:
            result = self.resolve_principal(claims)
        except Exception:
            self._audit(action, None, AuditCategory.SECURITY_DENIAL, AuditOutcome.ERROR,
                        target_type, target_id, actor_id=claims.principal_id,
                        details={'stage': 'principal-resolution'})
            raise
        if isinstance(result, Reject):
            return self._deny(result, action, target_type, target_id)
        principal = result.principal

        # Stage 4: capability, then ownership of the target.
        result = self.authorize(principal, capability)
        if isinstance(result, Reject):
            return self._deny(result, action, target_type, target_id)
        if resource is not None:
            try:
                ref = resource(**kwargs)
            except Exception:
                self._audit(action, principal, category, AuditOutcome.ERROR, target_type, target_id,
                            details={'stage': 'resource-load'})
                raise
            if ref is None:
                self._audit(action, principal, category, AuditOutcome.ERROR, target_type, target_id,
                            details=self._describe(404))
                return jsonify({'error': 'Resource not found'}), 404
            target_id = ref.id
            result = self.authorize(principal, resource=ref)
            if isinstance(result, Reject):
                return self._deny(result, action, ref.type, target_id)

        # Stage 5: the business handler.
        g.principal = principal
        try:
            response = make_response(view(*args, principal=principal, **kwargs))
        except Exception as exc:
            db.session.rollback()
            if isinstance(exc, AppError):
                status = exc.status_code
            elif isinstance(exc, HTTPException):
                status = exc.code or 500
            else:
                status = 500
            details = self._describe(status)
            details['error'] = type(exc).__name__
            self._audit(action, principal, category, AuditOutcome.ERROR, target_type, target_id, details=details)
            raise
        except BaseException:
            # Worker timeout or client abort mid-handler: the effect is unknown
            # but the attempt is still recorded.
            self._audit(action, principal, category, AuditOutcome.UNKNOWN, target_type, target_id,
                        details=self._describe(None))
            raise

        outcome = AuditOutcome.ALLOW if response.status_code < 400 else AuditOutcome.ERROR
        self._audit(action, principal, category, outcome, target_type, target_id,
                    details=self._describe(response.status_code))
        return response

    def _deny(self, rejection, action, target_type, target_id):
        self._audit(action, rejection.principal, AuditCategory.SECURITY_DENIAL, AuditOutcome.DENY,
                    target_type, target_id, reason=rejection.reason, actor_id=rejection.actor_id,
                    details=self._describe(rejection.status))
        current_app.logger.warning(
            f"Access denied: action='{action}' actor='{rejection.actor_id}' reason='{rejection.reason.value}'"
        )
        return rejection.to_response()

    def _audit(self, action, principal, category, outcome, target_type, target_id,
               reason=None, actor_id=None, details=None):
        self.recorder.record(
            action, principal, details,
            category=category, outcome=outcome,
            target_type=target_type, target_id=target_id,
            reason=reason, actor_id=actor_id,
        )

    @staticmethod
    def _describe(status):
        """Coarse description of the request: submitted field names, never values."""
        details = {'method': request.method, 'path': request.path, 'status': status}
        if request.method in MUTATING_METHODS:
            body = request.get_json(silent=True)
            if isinstance(body, dict):
                details['fields'] = sorted(str(key) for key in body)
        return details


def gated(action, target_type=None, capability=None, resource=None, category=None):
    """Route decorator putting a view behind the request gate.

    ``resource`` is a loader called with the view's URL arguments that
    returns a ``ResourceRef`` (or ``None`` when the target does not exist).
    The view receives the resolved principal as the ``principal`` keyword.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            gate = current_app.extensions['request_gate']
            return gate.guard(
                f, args, kwargs,
                action=action, target_type=target_type, capability=capability,
                resource=resource, category=category,
            )
        return decorated_function
    return decorator


def current_principal() -> Optional[Principal]:
    return g.get('principal')

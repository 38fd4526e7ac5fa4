"""HTTP client for the WorkPilot API.

Tokens live in an explicit ``TokenSession`` handed to the client. A request
that comes back 401 triggers one refresh and one retry; there is no other
retrying.
"""
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import urljoin

import requests

from workpilot.config import ORDER_LOOKUP_TIMEOUT_SECONDS, WORKPILOT_API_URL
from workpilot.db_models.enums import TaskStageStatus
from workpilot.models import (
    AuthenticationRequest, AuthResponse, ChangePasswordRequest, Customer, CustomerCreate, CustomerOrderView,
    DashboardSummary, FlowGraph, OrderCreate, OrderDetail, PageResult, RefreshRequest, RegisterRequest, Task,
    TaskCreate, TaskStage, TaskStageCreate, UserProfile, UserUpdateRequest,
)
from workpilot.query import OrderSearchFilter

log = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Something went wrong. Please try again."


class WorkPilotAPIError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code


class AuthenticationError(WorkPilotAPIError):
    """The session could not be (re)authenticated; the user must log in again."""


class ConnectionFailed(WorkPilotAPIError):
    pass


class ConnectionTimeout(ConnectionFailed):
    pass


class TokenSession:
    """Access/refresh token pair for one logged-in user."""

    def __init__(self, access_token: Optional[str] = None, refresh_token: Optional[str] = None):
        self._access_token = access_token
        self._refresh_token = refresh_token

    @property
    def access_token(self) -> Optional[str]:
        return self._access_token

    @property
    def refresh_token(self) -> Optional[str]:
        return self._refresh_token

    @property
    def is_authenticated(self) -> bool:
        return bool(self._access_token)

    def update(self, tokens: AuthResponse) -> None:
        self._access_token = tokens.access_token
        self._refresh_token = tokens.refresh_token

    def clear(self) -> None:
        self._access_token = None
        self._refresh_token = None


def _payload(model) -> Dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True, exclude_none=True)


def _message_from_response(response: requests.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    if body.get("message"):
        return body["message"]
    detail = body.get("detail")
    if isinstance(detail, list):
        # FastAPI request validation errors
        return "; ".join(str(item.get("msg", item)) for item in detail if item)
    return detail or None


def error_message(exc: Exception) -> str:
    """Text fit for showing to a user: backend message, else transport message, else a fallback."""
    if isinstance(exc, WorkPilotAPIError) and exc.message:
        return exc.message
    if isinstance(exc, requests.RequestException) and str(exc):
        return str(exc)
    return GENERIC_ERROR_MESSAGE


class WorkPilotClient:
    def __init__(self, base_url: str = WORKPILOT_API_URL, session: Optional[TokenSession] = None,
                 http: Optional[requests.Session] = None):
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.session = session or TokenSession()
        self.http = http or requests.Session()

    def _send(self, method: str, path: str, auth: bool, timeout: Optional[float] = None,
              **kwargs) -> requests.Response:
        headers = kwargs.pop("headers", {})
        if auth and self.session.access_token:
            headers["Authorization"] = f"Bearer {self.session.access_token}"
        try:
            return self.http.request(method, urljoin(self.base_url, path.lstrip("/")),
                                     headers=headers, timeout=timeout, **kwargs)
        except requests.Timeout as e:
            raise ConnectionTimeout(str(e) or "The request timed out.") from e
        except requests.ConnectionError as e:
            raise ConnectionFailed(str(e) or "Could not reach the server.") from e

    @staticmethod
    def _check(response: requests.Response) -> requests.Response:
        if response.ok:
            return response
        message = _message_from_response(response) or response.reason or GENERIC_ERROR_MESSAGE
        code = None
        try:
            body = response.json()
            if isinstance(body, dict):
                code = body.get("code")
        except ValueError:
            pass
        error_cls = AuthenticationError if response.status_code == 401 else WorkPilotAPIError
        raise error_cls(message, status_code=response.status_code, code=code)

    def _request(self, method: str, path: str, auth: bool = True, **kwargs) -> requests.Response:
        response = self._send(method, path, auth, **kwargs)
        if response.status_code == 401 and auth:
            if not self.session.refresh_token:
                self.session.clear()
                raise AuthenticationError("Session expired. Please log in again.", status_code=401)
            try:
                self.refresh()
            except WorkPilotAPIError as e:
                log.warning("Token refresh failed: %s", e)
                self.session.clear()
                raise AuthenticationError("Session expired. Please log in again.", status_code=401) from e
            response = self._send(method, path, auth, **kwargs)
            if response.status_code == 401:
                self.session.clear()
        return self._check(response)

    def _json(self, method: str, path: str, **kwargs) -> Any:
        return self._request(method, path, **kwargs).json()

    # --- auth ---

    def register(self, firstname: str, lastname: str, email: str, password: str, company_name: str,
                 phone: Optional[str] = None, address: Optional[str] = None) -> AuthResponse:
        body = RegisterRequest(firstname=firstname, lastname=lastname, email=email, password=password,
                               company_name=company_name, phone=phone, address=address)
        tokens = AuthResponse.model_validate(self._json("POST", "auth/register", auth=False, json=_payload(body)))
        self.session.update(tokens)
        return tokens

    def authenticate(self, email: str, password: str) -> AuthResponse:
        body = AuthenticationRequest(email=email, password=password)
        tokens = AuthResponse.model_validate(
            self._json("PUT", "auth/authenticate", auth=False, json=_payload(body))
        )
        self.session.update(tokens)
        return tokens

    def refresh(self) -> AuthResponse:
        body = RefreshRequest(refresh_token=self.session.refresh_token or "")
        response = self._check(self._send("POST", "auth/refresh", auth=False, json=_payload(body)))
        tokens = AuthResponse.model_validate(response.json())
        self.session.update(tokens)
        return tokens

    def logout(self) -> None:
        try:
            self._request("POST", "auth/logout")
        finally:
            self.session.clear()

    # --- users ---

    def get_profile(self) -> UserProfile:
        return UserProfile.model_validate(self._json("GET", "users"))

    def update_profile(self, **changes) -> UserProfile:
        body = UserUpdateRequest(**changes)
        return UserProfile.model_validate(self._json("PUT", "users", json=_payload(body)))

    def change_password(self, current_password: str, new_password: str, confirmation_password: str) -> None:
        body = ChangePasswordRequest(current_password=current_password, new_password=new_password,
                                     confirmation_password=confirmation_password)
        self._request("PUT", "users/change/password", json=_payload(body))

    # --- customers ---

    def list_customers(self, page: int = 0, page_size: int = 10) -> PageResult[Customer]:
        data = self._json("GET", "customer", params={"page": page, "pageSize": page_size})
        return PageResult[Customer].model_validate(data)

    def search_customers(self, q: Optional[str] = None, name: Optional[str] = None,
                         phone_number: Optional[str] = None, email: Optional[str] = None,
                         page: int = 0, page_size: int = 10) -> PageResult[Customer]:
        params = {"q": q, "name": name, "phoneNumber": phone_number, "email": email,
                  "page": page, "pageSize": page_size}
        data = self._json("GET", "customer/search", params={k: v for k, v in params.items() if v is not None})
        return PageResult[Customer].model_validate(data)

    def get_customer(self, customer_id: int) -> Customer:
        return Customer.model_validate(self._json("GET", f"customer/{customer_id}"))

    def create_customer(self, name: str, **fields) -> Customer:
        body = CustomerCreate(name=name, **fields)
        return Customer.model_validate(self._json("POST", "customer", json=_payload(body)))

    def update_customer(self, customer_id: int, name: str, **fields) -> Customer:
        body = CustomerCreate(name=name, **fields)
        return Customer.model_validate(self._json("PUT", f"customer/{customer_id}", json=_payload(body)))

    def delete_customer(self, customer_id: int) -> None:
        self._request("DELETE", f"customer/{customer_id}")

    # --- task stages ---

    def list_task_stages(self, name: Optional[str] = None) -> List[TaskStage]:
        params = {"name": name} if name else None
        return [TaskStage.model_validate(s) for s in self._json("GET", "task-stage", params=params)]

    def get_task_stage(self, stage_id: int) -> TaskStage:
        return TaskStage.model_validate(self._json("GET", f"task-stage/{stage_id}"))

    def create_task_stage(self, name: str, note: Optional[str] = None) -> TaskStage:
        body = TaskStageCreate(name=name, note=note)
        return TaskStage.model_validate(self._json("POST", "task-stage", json=_payload(body)))

    def update_task_stage(self, stage_id: int, name: str, note: Optional[str] = None) -> TaskStage:
        body = TaskStageCreate(name=name, note=note)
        return TaskStage.model_validate(self._json("PUT", f"task-stage/{stage_id}", json=_payload(body)))

    def soft_delete_task_stage(self, stage: TaskStage) -> TaskStage:
        body = TaskStageCreate(name=stage.name, note=stage.note, status=TaskStageStatus.DELETED)
        return TaskStage.model_validate(self._json("PUT", f"task-stage/{stage.id}", json=_payload(body)))

    def delete_task_stage(self, stage_id: int) -> None:
        self._request("DELETE", f"task-stage/{stage_id}")

    # --- tasks ---

    def list_tasks(self, name: Optional[str] = None) -> List[Task]:
        params = {"name": name} if name else None
        return [Task.model_validate(t) for t in self._json("GET", "task", params=params)]

    def get_task(self, task_id: int) -> Task:
        return Task.model_validate(self._json("GET", f"task/{task_id}"))

    def create_task(self, name: str, note: str = "", stage_ids: Optional[List[int]] = None,
                    flow: Optional[FlowGraph] = None) -> Task:
        body = TaskCreate(name=name, note=note, stage_ids=stage_ids, flow=flow)
        return Task.model_validate(self._json("POST", "task", json=_payload(body)))

    def update_task(self, task_id: int, name: str, note: str = "", stage_ids: Optional[List[int]] = None,
                    flow: Optional[FlowGraph] = None) -> Task:
        body = TaskCreate(name=name, note=note, stage_ids=stage_ids, flow=flow)
        return Task.model_validate(self._json("PUT", f"task/{task_id}", json=_payload(body)))

    def delete_task(self, task_id: int) -> None:
        self._request("DELETE", f"task/{task_id}")

    # --- orders ---

    def search_orders(self, criteria: Optional[OrderSearchFilter] = None) -> PageResult[OrderDetail]:
        params = _payload(criteria or OrderSearchFilter())
        if not params.get("status"):
            params.pop("status", None)
        return PageResult[OrderDetail].model_validate(self._json("GET", "order", params=params))

    def get_order(self, order_id: int) -> OrderDetail:
        return OrderDetail.model_validate(self._json("GET", f"order/{order_id}"))

    def create_order(self, customer_id: int, task_id: int) -> OrderDetail:
        body = OrderCreate(customer_id=customer_id, task_id=task_id)
        return OrderDetail.model_validate(self._json("POST", "order", json=_payload(body)))

    def start_order(self, order_id: int) -> OrderDetail:
        return OrderDetail.model_validate(self._json("PUT", f"order/{order_id}/start"))

    def move_to_next_stage(self, order_id: int) -> OrderDetail:
        return OrderDetail.model_validate(self._json("PUT", f"order/{order_id}/next-stage"))

    def move_to_previous_stage(self, order_id: int) -> OrderDetail:
        return OrderDetail.model_validate(self._json("PUT", f"order/{order_id}/previous-stage"))

    def complete_order(self, order_id: int) -> OrderDetail:
        return OrderDetail.model_validate(self._json("PUT", f"order/{order_id}/complete"))

    def revert_order(self, order_id: int) -> OrderDetail:
        return OrderDetail.model_validate(self._json("PUT", f"order/{order_id}/revert"))

    def cancel_order(self, order_id: int) -> OrderDetail:
        return OrderDetail.model_validate(self._json("DELETE", f"order/{order_id}/cancel"))

    def get_order_by_token(self, token: str) -> CustomerOrderView:
        """Public lookup; needs no login and gives up after the lookup timeout."""
        data = self._json("GET", f"customer-order/{token}", auth=False, timeout=ORDER_LOOKUP_TIMEOUT_SECONDS)
        return CustomerOrderView.model_validate(data)

    # --- dashboard ---

    def get_dashboard_summary(self) -> DashboardSummary:
        return DashboardSummary.model_validate(self._json("GET", "dashboard/summary"))

    def healthcheck(self) -> Dict[str, str]:
        return self._json("GET", "healthz", auth=False)

from __future__ import annotations

import os
import time
from typing import Any, Dict, Optional, Tuple

import requests


DEFAULT_TIMEOUT = float(os.getenv("ONBOARDING_TEST_HTTP_TIMEOUT_SECS", "30.0"))
RETRY_SECS = float(os.getenv("ONBOARDING_TEST_RETRY_SECS", "0.5"))
RETRY_MAX = int(os.getenv("ONBOARDING_TEST_RETRY_MAX", "20"))


class HttpError(RuntimeError):
    pass


def _join(base: str, path: str) -> str:
    if not base:
        raise ValueError("base url is empty")
    if not path.startswith("/"):
        path = "/" + path
    return base.rstrip("/") + path


def _decode(r: requests.Response) -> Tuple[int, Any, str]:
    text = r.text or ""
    try:
        body = r.json()
    except ValueError:
        body = None
    return r.status_code, body, text


def http_get_json(base: str, path: str, *, timeout: float = DEFAULT_TIMEOUT) -> Tuple[int, Any, str]:
    return _decode(requests.get(_join(base, path), timeout=timeout))


def http_post_json(
    base: str,
    path: str,
    payload: Optional[Dict[str, Any]] = None,
    *,
    timeout: float = DEFAULT_TIMEOUT,
) -> Tuple[int, Any, str]:
    return _decode(requests.post(_join(base, path), json=payload, timeout=timeout))


def http_put_json(base: str, path: str, payload: Dict[str, Any], *, timeout: float = DEFAULT_TIMEOUT) -> Tuple[int, Any, str]:
    return _decode(requests.put(_join(base, path), json=payload, timeout=timeout))


def http_delete(base: str, path: str, *, timeout: float = DEFAULT_TIMEOUT) -> int:
    return requests.delete(_join(base, path), timeout=timeout).status_code


def wait_for_health(base_url: str, health_path: str = "/health") -> None:
    url = _join(base_url, health_path)
    last_err: Optional[str] = None
    for _ in range(RETRY_MAX):
        try:
            r = requests.get(url, timeout=DEFAULT_TIMEOUT)
            if r.status_code < 400:
                return
            last_err = f"{r.status_code}: {r.text[:200]}"
        except requests.RequestException as e:
            last_err = str(e)
        time.sleep(RETRY_SECS)
    raise HttpError(f"Service not healthy at {url}. Last error: {last_err}")


def assert_not_5xx(status_code: int, text: str = "") -> None:
    assert status_code < 500, f"Unexpected 5xx: {status_code} {text[:300]}"

# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""Wrapper for httpx functions to add additional context"""

import httpx


def create_client(base_url: str, token: str | None, timeout: float, verify: bool = True, headers: dict | None = None, transport: httpx.BaseTransport | None = None) -> httpx.Client:
    """
    Client for a remote REST API authenticated with a bearer token.
    The timeout applies to every request made with the client.
    """
    request_headers = {"Accept": "application/json"}
    if token:
        request_headers["Authorization"] = f"Bearer {token}"
    if headers:
        request_headers.update(headers)
    return httpx.Client(
        base_url=base_url,
        headers=request_headers,
        timeout=timeout,
        verify=verify,
        transport=transport,
    )


def send(client: httpx.Client, method: str, url: str, **kwargs) -> httpx.Response:
    """Wrapper for httpx.Client.request, on error adds additional information to exception
    By default httpx.Connection error only provides '[Errno -2] Name or service not known'
    Throws httpx.TransportError with method & URL on failure to reach the service
    """
    try:
        return client.request(method, url, **kwargs)
    except httpx.TransportError as e:
        error_msg = f"Failed to {method} {client.base_url}{url}"
        e.add_note(error_msg)
        raise

import os
import time
from typing import Optional

import requests

from .config import ClientConfig
from .constants import DEFAULT_NETWORK_TIMEOUT_SEC
from .errors import BuildfunctionsAPIError, NetworkError
from .logger import logger
from .retry_strategy import RetryStrategy


class Connection:
    """Wrapper of HTTP requests to the Buildfunctions platform."""

    def __init__(self, config: ClientConfig):
        self.config = config

    def __repr__(self):
        return f"Connection(base_url='{self.config.base_url}')"

    def __eq__(self, other):
        return self.config == other.config

    @property
    def endpoint(self) -> str:
        return self.config.base_url

    def delete(self, route: str, payload: Optional[dict] = None):
        return self.make_request(
            payload or {}, route, requests_command=requests.delete
        )

    def get(self, route: str, params: Optional[dict] = None):
        return self.make_request(
            {}, route, requests_command=requests.get, params=params
        )

    def post(self, payload: dict, route: str, **kwargs):
        return self.make_request(
            payload, route, requests_command=requests.post, **kwargs
        )

    def put(self, payload: dict, route: str):
        return self.make_request(payload, route, requests_command=requests.put)

    def make_request(
        self,
        payload: Optional[dict],
        route: str,
        requests_command=None,
        return_raw_response: bool = False,
        base_url: Optional[str] = None,
        authenticated: bool = True,
        timeout: float = DEFAULT_NETWORK_TIMEOUT_SEC,
        ok_statuses: Optional[set] = None,
        params: Optional[dict] = None,
    ):
        """
        Makes a request to a platform endpoint and raises if not successful.

        :param payload: given payload, sent as JSON
        :param route: route for the request
        :param requests_command: requests.post, requests.get, requests.delete
        :param return_raw_response: return the request's response object entirely
        :param base_url: overrides the platform base url, e.g. for the GPU build server
        :param authenticated: whether to send the bearer token
        :param timeout: request timeout in seconds
        :param ok_statuses: statuses accepted instead of ``response.ok``
        :param params: query string parameters
        :return: response JSON
        """
        if requests_command is None:
            requests_command = requests.post
        endpoint = f"{base_url or self.config.base_url}/{route}"
        headers = {"Content-Type": "application/json"}
        if authenticated:
            headers["Authorization"] = f"Bearer {self.config.bearer_token}"

        logger.info("Make request to %s", endpoint)

        for retry_wait_time in RetryStrategy.sleep_times():
            try:
                response = requests_command(
                    endpoint,
                    json=payload,
                    params=params,
                    headers=headers,
                    timeout=timeout,
                    verify=os.environ.get(
                        "BUILDFUNCTIONS_SKIP_SSL_VERIFY", None
                    )
                    is None,
                )
            except requests.exceptions.Timeout as e:
                raise NetworkError(f"Request to {endpoint} timed out") from e
            except requests.exceptions.ConnectionError as e:
                raise NetworkError(
                    f"Unable to connect to server at {endpoint}"
                ) from e
            logger.info(
                "API request has response code %s", response.status_code
            )
            if response.status_code not in RetryStrategy.statuses:
                break
            time.sleep(retry_wait_time)

        is_ok = (
            response.status_code in ok_statuses
            if ok_statuses is not None
            else response.ok
        )
        if not is_ok:
            self.handle_bad_response(endpoint, requests_command, response)

        if return_raw_response:
            return response

        return response.json()

    def handle_bad_response(
        self,
        endpoint,
        requests_command,
        requests_response,
    ):
        raise BuildfunctionsAPIError(
            endpoint, requests_command, requests_response
        )

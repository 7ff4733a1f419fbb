"""Live API DataSource implementation.

Collects data directly from IntelliFlash REST API endpoints.
"""

import json
import logging
import time
from typing import Callable, List, Optional, Tuple

import requests
import urllib3

from .base import DataSource, CollectionResult, SystemInfo
from .request_builder import AnalyticsRequest, build_requests
from ..config.analytics_categories import AnalyticsCategory
from ..config.api_endpoints import BODY_CHUNK_SIZE, HEADER_TIMEOUT, REQUEST_HEADERS, build_url
from ..core.exceptions import (
    ConnectionFailure, HTTPStatusFailure, IntelliflashError, MissingCredentials
)
from ..read.json_reader import JsonReader
from ..schema.models import MeasurementRecord, ServerTarget
from ..utils.data_extraction import MeasurementMapper

logger = logging.getLogger(__name__)


def build_session(config) -> requests.Session:
    """Create the one HTTP session shared by every server task.

    Args:
        config: CollectorConfig with the TLS settings
    """
    session = requests.Session()

    if config.insecure_skip_verify:
        session.verify = False
        urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)
        logger.warning("TLS validation is DISABLED for the IntelliFlash API. This is insecure.")
    else:
        session.verify = config.tls_ca if config.tls_ca else True

    if config.tls_cert and config.tls_key:
        session.cert = (config.tls_cert, config.tls_key)

    return session


class IntelliflashAPIClient:
    """Issues authenticated requests against IntelliFlash arrays.

    One instance is shared by all server tasks; it holds no per-request state.
    """

    def __init__(self, session: requests.Session, username: Optional[str] = None,
                 password: Optional[str] = None, response_timeout: float = 5,
                 debug: bool = False, timer: Callable[[], float] = time.monotonic):
        self.session = session
        self.username = username
        self.password = password
        self.response_timeout = response_timeout
        self.debug = debug
        self.timer = timer

    def credentials(self, target: ServerTarget) -> Tuple[str, str]:
        """Basic-auth pair for target; raises MissingCredentials if there is none."""
        # Configured credentials win over those embedded in the address
        if self.username or self.password:
            return self.username or '', self.password or ''
        if target.has_credentials:
            return target.username or '', target.password or ''
        raise MissingCredentials()

    def request(self, target: ServerTarget, analytics_request: AnalyticsRequest) -> bytes:
        """
        Send one request and return the raw response body.

        Raises:
            MissingCredentials: No credentials available (no network call made)
            ConnectionFailure: Transport error or timeout
            HTTPStatusFailure: Non-2xx response
        """
        auth = self.credentials(target)
        url = build_url(target.host, analytics_request.endpoint_key)
        logger.debug(f"{analytics_request.method} {url} body={analytics_request.body}")

        deadline = self.timer() + self.response_timeout
        try:
            # The read timeout bounds the wait for headers; the body is read against the deadline
            response = self.session.request(
                analytics_request.method,
                url,
                data=analytics_request.payload(),
                headers=REQUEST_HEADERS,
                auth=auth,
                timeout=(HEADER_TIMEOUT, min(HEADER_TIMEOUT, self.response_timeout)),
                stream=True,
            )
        except requests.RequestException as e:
            raise ConnectionFailure(f"Unable to connect to intelliflash API '{target.host}': {e}") from e

        try:
            body = self._read_body(response, deadline, target)
        finally:
            response.close()

        if not 200 <= response.status_code < 300:
            vendor_message = self._vendor_error_message(body) if self.debug else None
            raise HTTPStatusFailure(
                f"Unable to get valid stat result from '{target.host}', "
                f"http response code : {response.status_code}",
                status_code=response.status_code,
                vendor_message=vendor_message,
            )

        return body

    def _read_body(self, response, deadline: float, target: ServerTarget) -> bytes:
        """Read the whole body, failing once the response timeout has passed."""
        chunks = []
        try:
            if self.timer() > deadline:
                raise ConnectionFailure(
                    f"Unable to connect to intelliflash API '{target.host}': "
                    f"no response within {self.response_timeout}s")
            for chunk in response.iter_content(chunk_size=BODY_CHUNK_SIZE):
                chunks.append(chunk)
                if self.timer() > deadline:
                    raise ConnectionFailure(
                        f"Unable to connect to intelliflash API '{target.host}': "
                        f"response not complete within {self.response_timeout}s")
        except requests.RequestException as e:
            raise ConnectionFailure(f"Unable to connect to intelliflash API '{target.host}': {e}") from e
        return b''.join(chunks)

    @staticmethod
    def _vendor_error_message(body: bytes) -> Optional[str]:
        """Pull the message out of the array's exception envelope, if any.

        {"code": ..., "details": ..., "message": ...,
         "extendedData": {"EX_CAUSE_MESSAGE": ...}}
        """
        try:
            envelope = json.loads(body)
        except ValueError:
            logger.debug("Error body is not a vendor exception envelope")
            return None
        if not isinstance(envelope, dict):
            return None

        message = envelope.get('message')
        extended = envelope.get('extendedData')
        cause = extended.get('EX_CAUSE_MESSAGE') if isinstance(extended, dict) else None
        if message and cause and cause != message:
            return f"{message} ({cause})"
        return message or cause


class LiveAPIDataSource(DataSource):
    """DataSource implementation for one IntelliFlash array.

    This implementation handles:
    - Identity discovery (self-reported FQDN for the 'array' tag)
    - System, data and capacity analytics collection
    - Per-request error capture so that one failed request never hides others
    """

    def __init__(self, target: ServerTarget, client: IntelliflashAPIClient, config,
                 clock: Optional[Callable[[], float]] = None):
        super().__init__(config)
        self.target = target
        self.client = client
        self.clock = clock or time.time
        self._system_info = SystemInfo(host=target.host)

    @property
    def array_name(self) -> str:
        if self.config.array_tag == 'identity' and self._system_info.fqdn:
            return self._system_info.fqdn
        return self.target.host

    def _mapper(self) -> MeasurementMapper:
        return MeasurementMapper(self.array_name, clock=self.clock)

    def _fetch_records(self, analytics_request: AnalyticsRequest) -> List[MeasurementRecord]:
        body = self.client.request(self.target, analytics_request)
        elements = JsonReader.decode(body, analytics_request.category)

        if analytics_request.category is AnalyticsCategory.CAPACITY:
            elements = self._filter_pools(elements)

        return self._mapper().map(elements, analytics_request.category)

    def _filter_pools(self, elements):
        allowed = set()
        for group in self.config.capacity_metrics.values():
            pools = group.pool_names()
            if not pools:
                # A group without dataset paths selects every pool
                return elements
            allowed.update(pools)
        return [e for e in elements if e.name in allowed]

    def _collect(self, category: AnalyticsCategory, requests_list: List[AnalyticsRequest]) -> CollectionResult:
        result = CollectionResult(collection_type=category, metadata={'server': self.target.host})
        for analytics_request in requests_list:
            try:
                records = self._fetch_records(analytics_request)
                result.records.extend(records)
                logger.debug(f"Collected {len(records)} {analytics_request.label} records from {self.target.host}")
            except IntelliflashError as e:
                logger.error(f"Failed to collect {analytics_request.label} from {self.target.host}: {e}")
                result.errors.append(e)
            except Exception as e:
                logger.error(f"Unexpected error collecting {analytics_request.label} from {self.target.host}: {e}",
                             exc_info=True)
                result.errors.append(e)
        return result

    def resolve_identity(self) -> CollectionResult:
        result = CollectionResult(collection_type=AnalyticsCategory.IDENTITY, metadata={'server': self.target.host})
        analytics_request = build_requests(AnalyticsCategory.IDENTITY)[0]
        try:
            body = self.client.request(self.target, analytics_request)
            fqdn = JsonReader.decode_identity(body)
        except IntelliflashError as e:
            logger.warning(f"Identity lookup failed for {self.target.host}, tagging with address: {e}")
            result.errors.append(e)
            return result

        if fqdn:
            self._system_info = SystemInfo(host=self.target.host, fqdn=fqdn)
            logger.info(f"Array {self.target.host} identifies as {fqdn}")
        else:
            logger.warning(f"Array {self.target.host} reported no host name, tagging with address")
        result.metadata['fqdn'] = fqdn
        return result

    def collect_system_data(self) -> CollectionResult:
        return self._collect(
            AnalyticsCategory.SYSTEM,
            build_requests(AnalyticsCategory.SYSTEM, system_metrics=self.config.system_metrics),
        )

    def collect_data_analytics(self) -> CollectionResult:
        return self._collect(
            AnalyticsCategory.DATA,
            build_requests(AnalyticsCategory.DATA, data_metrics=self.config.data_metrics),
        )

    def collect_capacity_data(self) -> CollectionResult:
        return self._collect(AnalyticsCategory.CAPACITY, build_requests(AnalyticsCategory.CAPACITY))

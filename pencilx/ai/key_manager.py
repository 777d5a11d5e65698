"""
API Key Rotation Table
Per-provider credential ring with quota-aware rotation and lazy cool-down
"""

import time
from dataclasses import asdict, dataclass
from typing import Callable, Dict, List, Mapping, Optional

from pencilx.ai.exceptions import InvalidKeyConfigError, NoValidKeysError
from pencilx.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_COOLDOWN_SECONDS = 300
MAX_LEGACY_KEYS = 10


@dataclass(frozen=True)
class Credential:
    """A single API key bound to one provider"""

    value: str
    name: str

    def __repr__(self) -> str:
        return f"Credential(name={self.name!r})"


@dataclass
class CredentialStatus:
    """Mutable health record of one credential"""

    exhausted: bool = False
    last_used: Optional[float] = None
    error_count: int = 0
    response_time_ms: float = 0.0
    exhausted_until: Optional[float] = None
    last_error: Optional[str] = None


def parse_credentials(keys_str: str, default_prefix: str = "key") -> List[Credential]:
    """
    Parse a comma-separated key list.

    Format: key1|name1,key2|name2,key3 (the name is optional).

    Raises:
        InvalidKeyConfigError: If an entry has an empty key
    """
    credentials: List[Credential] = []
    for i, key_pair in enumerate(keys_str.split(",")):
        key_pair = key_pair.strip()
        if not key_pair:
            continue

        parts = key_pair.split("|")
        value = parts[0].strip()
        name = parts[1].strip() if len(parts) > 1 and parts[1].strip() else f"{default_prefix}_{i+1}"

        if not value:
            raise InvalidKeyConfigError(f"Empty API key at position {i}")

        credentials.append(Credential(value=value, name=name))
    return credentials


def parse_legacy_credentials(env: Mapping[str, str], prefix: str) -> List[Credential]:
    """Parse numbered variables: PREFIX, PREFIX_2, PREFIX_3, ..."""
    credentials: List[Credential] = []
    for key_index in range(1, MAX_LEGACY_KEYS + 1):
        env_var = prefix if key_index == 1 else f"{prefix}_{key_index}"
        key = (env.get(env_var) or "").strip()
        if not key:
            break
        name = "primary" if key_index == 1 else f"backup-{key_index-1}"
        credentials.append(Credential(value=key, name=name))
    return credentials


class KeyRotationTable:
    """
    Owns the credential rings and their status for every provider.

    One instance is built at startup and shared by all clients. Status
    mutations never await, so they are atomic on the event loop. Exhausted
    credentials come back once their cool-down expiry has passed, which is
    checked lazily whenever the table is read.
    """

    def __init__(
        self,
        credentials: Mapping[str, List[Credential]],
        cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.cooldown_seconds = cooldown_seconds
        self.clock = clock
        self._credentials: Dict[str, List[Credential]] = {
            provider: list(creds) for provider, creds in credentials.items()
        }
        self._index: Dict[str, int] = {provider: 0 for provider in self._credentials}
        self._status: Dict[str, Dict[str, CredentialStatus]] = {
            provider: {} for provider in self._credentials
        }

        for provider, creds in self._credentials.items():
            logger.info(f"Loaded {len(creds)} API key(s) for provider '{provider}'")

    # ------------------------------------------------------------------
    # Lookup helpers
    # ------------------------------------------------------------------

    def providers(self) -> List[str]:
        return list(self._credentials)

    def credentials(self, provider: str) -> List[Credential]:
        return list(self._credentials.get(provider, []))

    def has_credentials(self, provider: str) -> bool:
        return bool(self._credentials.get(provider))

    def _ring(self, provider: str) -> List[Credential]:
        creds = self._credentials.get(provider)
        if not creds:
            raise NoValidKeysError(provider)
        return creds

    def status(self, provider: str, credential: Credential) -> CredentialStatus:
        """Status record for a credential, created on first access"""
        self._expire(provider)
        table = self._status.setdefault(provider, {})
        if credential.value not in table:
            table[credential.value] = CredentialStatus()
        return table[credential.value]

    def _is_exhausted(self, provider: str, credential: Credential) -> bool:
        entry = self._status.get(provider, {}).get(credential.value)
        return bool(entry and entry.exhausted)

    def _expire(self, provider: str) -> None:
        now = self.clock()
        table = self._status.get(provider, {})
        creds_by_value = {c.value: c for c in self._credentials.get(provider, [])}
        for value, entry in list(table.items()):
            if entry.exhausted and entry.exhausted_until is not None and now >= entry.exhausted_until:
                table[value] = CredentialStatus()
                credential = creds_by_value.get(value)
                logger.info(
                    f"Key '{credential.name if credential else '?'}' of '{provider}' "
                    f"recovered after cool-down"
                )

    # ------------------------------------------------------------------
    # Rotation
    # ------------------------------------------------------------------

    def current(self, provider: str) -> Credential:
        """
        Get the current credential of a provider.

        If the current one is exhausted and another one is not, the index
        first moves forward to that one. A fully exhausted ring returns the
        current (exhausted) credential unchanged.
        """
        ring = self._ring(provider)
        self._expire(provider)
        index = self._index[provider]
        if not self._is_exhausted(provider, ring[index]):
            return ring[index]

        for step in range(1, len(ring)):
            candidate = (index + step) % len(ring)
            if not self._is_exhausted(provider, ring[candidate]):
                self._index[provider] = candidate
                return ring[candidate]
        return ring[index]

    def rotate(self, provider: str) -> Credential:
        """
        Advance to the next non-exhausted credential in ring order.

        When every credential is exhausted the provider's whole status table
        is cleared and the index goes back to 0.
        """
        ring = self._ring(provider)
        self._expire(provider)
        start = self._index[provider]

        for step in range(1, len(ring) + 1):
            candidate = (start + step) % len(ring)
            if not self._is_exhausted(provider, ring[candidate]):
                self._index[provider] = candidate
                logger.debug(f"Rotated '{provider}' to key: {ring[candidate].name}")
                return ring[candidate]

        logger.warning(f"All {len(ring)} '{provider}' API keys exhausted, resetting status")
        self.reset(provider)
        return ring[0]

    def reset(self, provider: str) -> None:
        """Clear every status record of a provider and rewind the ring"""
        self._status[provider] = {}
        self._index[provider] = 0

    # ------------------------------------------------------------------
    # Outcome bookkeeping
    # ------------------------------------------------------------------

    def mark_exhausted(self, provider: str, credential: Credential, reason: str) -> None:
        entry = self.status(provider, credential)
        entry.exhausted = True
        entry.error_count += 1
        entry.last_error = reason
        entry.exhausted_until = self.clock() + self.cooldown_seconds
        logger.warning(
            f"API key '{credential.name}' of '{provider}' exhausted: {reason}. "
            f"Retry after {self.cooldown_seconds}s"
        )

    def mark_success(
        self, provider: str, credential: Credential, response_time_ms: Optional[float] = None
    ) -> None:
        entry = self.status(provider, credential)
        entry.exhausted = False
        entry.exhausted_until = None
        entry.last_used = self.clock()
        if response_time_ms is not None:
            entry.response_time_ms = response_time_ms

    def record_error(self, provider: str, credential: Credential, error: str) -> None:
        """Bookkeeping for failures that do not exhaust the credential"""
        entry = self.status(provider, credential)
        entry.last_used = self.clock()
        entry.last_error = error

    # ------------------------------------------------------------------
    # Availability and reporting
    # ------------------------------------------------------------------

    def available_count(self, provider: str) -> int:
        self._expire(provider)
        return sum(
            1
            for credential in self._credentials.get(provider, [])
            if not self._is_exhausted(provider, credential)
        )

    def is_available(self, provider: str) -> bool:
        """A provider is unavailable iff every credential it owns is exhausted"""
        return self.available_count(provider) > 0

    def snapshot(self, provider: str) -> Dict:
        """Status report without key values"""
        self._expire(provider)
        creds = self._credentials.get(provider, [])
        keys = []
        for credential in creds:
            entry = self._status.get(provider, {}).get(credential.value) or CredentialStatus()
            keys.append({"name": credential.name, **asdict(entry)})

        timings = [k["response_time_ms"] for k in keys if k["response_time_ms"]]
        return {
            "total_keys": len(creds),
            "available_keys": self.available_count(provider),
            "current_key_index": self._index.get(provider, 0),
            "average_response_time_ms": sum(timings) / len(timings) if timings else 0.0,
            "keys": keys,
        }

"""
Chain client used by the orchestrator and the verification scenarios.

Transactions are signed and broadcast by the chain's node CLI (``terrad``,
``neutrond``, ...) and then confirmed by polling the LCD REST API until the
transaction is included in a block. Queries go straight to the LCD.
"""

from __future__ import annotations

import base64
import json
import logging
import subprocess
from pathlib import Path
from typing import Any, Callable
from urllib.parse import quote

from ibc_migrator.constants import (
    LCD_BALANCE_PATH,
    LCD_CHANNELS_PATH,
    LCD_SMART_QUERY_PATH,
    LCD_TX_PATH,
    TRANSFER_PORT,
    TX_CODE_OK,
)
from ibc_migrator.core.channels import Channel
from ibc_migrator.core.config import ChainSettings, PollingSettings
from ibc_migrator.core.denom import tokenfactory_denom
from ibc_migrator.exceptions import (
    ConfigError,
    DeploymentFailedError,
    RelayTimeoutError,
    TransactionFailedError,
)
from ibc_migrator.types import Coin, TxResponse, format_coins
from ibc_migrator.utils.api import LcdSession
from ibc_migrator.utils.logging import log_with_context
from ibc_migrator.utils.polling import poll_until

Runner = Callable[..., subprocess.CompletedProcess]


def to_base64(msg: dict[str, Any]) -> str:
    """Base64 of the compact JSON encoding of ``msg``."""
    return base64.b64encode(json.dumps(msg, separators=(",", ":")).encode()).decode()


def event_attribute(tx: TxResponse, event_type: str, key: str) -> str | None:
    """Return the first ``key`` attribute of an ``event_type`` event in ``tx``."""
    events = list(tx.get("events") or [])
    for log in tx.get("logs") or []:
        events.extend(log.get("events") or [])
    for event in events:
        if event.get("type") != event_type:
            continue
        for attr in event.get("attributes") or []:
            if attr.get("key") == key:
                return attr.get("value")
    return None


class ChainClient:
    """Submit transactions to and query one chain as the configured signer."""

    def __init__(
        self,
        settings: ChainSettings,
        polling: PollingSettings,
        lcd: LcdSession | None = None,
        runner: Runner = subprocess.run,
        max_retries: int = 3,
        retry_delay: float = 1,
    ) -> None:
        self.settings = settings
        self.polling = polling
        self.lcd = lcd or LcdSession(
            settings.lcd,
            chain=settings.chain_id,
            max_retries=max_retries,
            retry_delay=retry_delay,
        )
        self._runner = runner
        self._address = settings.address

    @property
    def chain_id(self) -> str:
        return self.settings.chain_id

    @property
    def address(self) -> str:
        """Bech32 address of the signer, resolved from the keyring if not configured."""
        if not self._address:
            result = self._run(
                ["keys", "show", self.settings.key, "-a", *self._keyring_flags()]
            )
            if result.returncode != 0:
                raise ConfigError(
                    f"Could not resolve address of key '{self.settings.key}' "
                    f"on {self.chain_id}: {result.stderr.strip()}"
                )
            self._address = result.stdout.strip()
        return self._address

    # ------------------------------------------------------------------
    # Node CLI plumbing
    # ------------------------------------------------------------------

    def _keyring_flags(self) -> list[str]:
        flags = ["--keyring-backend", self.settings.keyring_backend]
        if self.settings.home:
            flags += ["--home", self.settings.home]
        return flags

    def _tx_flags(self) -> list[str]:
        return [
            "--from",
            self.settings.key,
            "--chain-id",
            self.chain_id,
            "--node",
            self.settings.node,
            "--gas",
            "auto",
            "--gas-adjustment",
            str(self.settings.gas_adjustment),
            "--gas-prices",
            self.settings.gas_prices,
            "--broadcast-mode",
            "sync",
            "--output",
            "json",
            "-y",
            *self._keyring_flags(),
        ]

    def _run(self, args: list[str]) -> subprocess.CompletedProcess:
        command = [self.settings.binary, *args]
        log_with_context(
            logging.DEBUG, f"Running: {' '.join(command)}", chain=self.chain_id
        )
        try:
            return self._runner(
                command,
                check=False,
                text=True,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise ConfigError(
                f"Node binary '{self.settings.binary}' for {self.chain_id} not found"
            ) from e

    def broadcast(self, args: list[str], description: str) -> TxResponse:
        """Sign and broadcast ``tx <args>``, then wait for block inclusion.

        Returns:
            The confirmed ``tx_response``.

        Raises:
            TransactionFailedError: If the CLI, the mempool or block execution
                rejects the transaction, or it is not included in time.
        """
        result = self._run(["tx", *args, *self._tx_flags()])
        if result.returncode != 0:
            raise TransactionFailedError(
                f"{description} rejected on {self.chain_id}: {result.stderr.strip()}",
                raw_log=result.stderr.strip(),
            )
        try:
            submitted = json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise TransactionFailedError(
                f"{description}: unparseable broadcast output on {self.chain_id}: {e}",
                raw_log=result.stdout,
            ) from e
        self._check_code(submitted, description)

        txhash = submitted["txhash"]
        log_with_context(
            logging.DEBUG,
            f"{description} broadcast as {txhash}, waiting for inclusion",
            chain=self.chain_id,
        )
        try:
            confirmed = poll_until(
                lambda: self._query_tx(txhash),
                self.polling.interval,
                self.polling.tx_timeout,
                f"inclusion of tx {txhash}",
                chain=self.chain_id,
            )
        except RelayTimeoutError as e:
            raise TransactionFailedError(
                f"{description}: {e}", txhash=txhash
            ) from e

        tx_response: TxResponse = confirmed["tx_response"]
        self._check_code(tx_response, description)
        log_with_context(
            logging.INFO,
            f"{description} included at height {tx_response.get('height')}",
            chain=self.chain_id,
        )
        return tx_response

    def _check_code(self, tx: TxResponse, description: str) -> None:
        code = int(tx.get("code") or TX_CODE_OK)
        if code != TX_CODE_OK:
            raise TransactionFailedError(
                f"{description} failed on {self.chain_id} with code {code}: "
                f"{tx.get('raw_log', '')}",
                code=code,
                raw_log=tx.get("raw_log", ""),
                txhash=tx.get("txhash"),
            )

    def _query_tx(self, txhash: str) -> dict[str, Any] | None:
        return self.lcd.get_json(LCD_TX_PATH.format(txhash=txhash), allow_not_found=True)

    # ------------------------------------------------------------------
    # Contract lifecycle
    # ------------------------------------------------------------------

    def store_code(self, wasm_path: Path) -> int:
        """Upload a wasm binary and return its code id."""
        wasm_path = Path(wasm_path)
        if not wasm_path.is_file():
            raise ConfigError(f"Contract artifact not found: {wasm_path}")
        try:
            tx = self.broadcast(["wasm", "store", str(wasm_path)], f"store {wasm_path.name}")
        except TransactionFailedError as e:
            raise DeploymentFailedError(
                str(e), code=e.code, raw_log=e.raw_log, txhash=e.txhash
            ) from e
        code_id = event_attribute(tx, "store_code", "code_id")
        if code_id is None:
            raise DeploymentFailedError(
                f"No code_id in store result for {wasm_path}", txhash=tx.get("txhash")
            )
        return int(code_id)

    def instantiate(
        self,
        code_id: int,
        msg: dict[str, Any],
        label: str,
        admin: str | None = None,
    ) -> str:
        """Instantiate ``code_id`` and return the new contract address.

        The signer is the contract admin unless ``admin`` says otherwise.
        """
        args = [
            "wasm",
            "instantiate",
            str(code_id),
            json.dumps(msg),
            "--label",
            label,
            "--admin",
            admin or self.address,
        ]
        try:
            tx = self.broadcast(args, f"instantiate {label}")
        except TransactionFailedError as e:
            raise DeploymentFailedError(
                str(e), code=e.code, raw_log=e.raw_log, txhash=e.txhash
            ) from e
        address = event_attribute(tx, "instantiate", "_contract_address")
        if address is None:
            raise DeploymentFailedError(
                f"No contract address in instantiate result for {label}",
                txhash=tx.get("txhash"),
            )
        return address

    def migrate(self, contract: str, code_id: int, msg: dict[str, Any]) -> None:
        """Migrate ``contract`` to ``code_id``."""
        try:
            self.broadcast(
                ["wasm", "migrate", contract, str(code_id), json.dumps(msg)],
                f"migrate {contract}",
            )
        except TransactionFailedError as e:
            raise DeploymentFailedError(
                str(e), code=e.code, raw_log=e.raw_log, txhash=e.txhash
            ) from e

    def execute(
        self, contract: str, msg: dict[str, Any], funds: list[Coin] | None = None
    ) -> TxResponse:
        """Execute a contract entry point, optionally attaching native funds."""
        args = ["wasm", "execute", contract, json.dumps(msg)]
        if funds:
            args += ["--amount", format_coins(funds)]
        entry_point = next(iter(msg), "execute")
        return self.broadcast(args, f"execute {entry_point} on {contract}")

    # ------------------------------------------------------------------
    # Native assets
    # ------------------------------------------------------------------

    def create_denom(self, subdenom: str) -> str:
        """Create a token-factory denom owned by the signer and return it."""
        self.broadcast(["tokenfactory", "create-denom", subdenom], f"create denom {subdenom}")
        return tokenfactory_denom(self.address, subdenom)

    def mint(self, denom: str, amount: int) -> None:
        self.broadcast(["tokenfactory", "mint", str(Coin(denom, amount))], f"mint {denom}")

    def bank_send(self, recipient: str, coins: list[Coin]) -> None:
        self.broadcast(
            ["bank", "send", self.settings.key, recipient, format_coins(coins)],
            f"send {format_coins(coins)} to {recipient}",
        )

    def ibc_transfer(self, channel: str, receiver: str, coin: Coin) -> None:
        """ICS-20 transfer of a native coin through ``channel``."""
        self.broadcast(
            ["ibc-transfer", "transfer", TRANSFER_PORT, channel, receiver, str(coin)],
            f"IBC transfer of {coin} over {channel}",
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def query_contract(self, contract: str, query: dict[str, Any]) -> Any:
        path = LCD_SMART_QUERY_PATH.format(
            address=contract, query=quote(to_base64(query), safe="")
        )
        return self.lcd.get_json(path)["data"]

    def query_balance(self, address: str, denom: str) -> int:
        resp = self.lcd.get_json(
            LCD_BALANCE_PATH.format(address=address), params={"denom": denom}
        )
        balance = resp.get("balance") or {}
        return int(balance.get("amount") or 0)

    def cw20_balance(self, token: str, address: str) -> int:
        return int(self.query_contract(token, {"balance": {"address": address}})["balance"])

    def cw20_total_supply(self, token: str) -> int:
        return int(self.query_contract(token, {"token_info": {}})["total_supply"])

    def list_channels(self) -> list[Channel]:
        """All IBC channel ends known to this chain, across result pages."""
        channels: list[Channel] = []
        params: dict[str, Any] = {}
        while True:
            resp = self.lcd.get_json(LCD_CHANNELS_PATH, params=params or None)
            channels.extend(Channel.from_dict(ch) for ch in resp.get("channels") or [])
            next_key = (resp.get("pagination") or {}).get("next_key")
            if not next_key:
                return channels
            params = {"pagination.key": next_key}

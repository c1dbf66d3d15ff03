"""
Runtime metadata wrapper.

Decodes the SCALE metadata blob returned by `state_getMetadata` and answers
the three questions the registration flow asks of the runtime:
- does a pallet expose a given call
- what is the (section, name, docs) of a module error
- what events did a block emit

and decodes the free balance out of a System.Account value.
"""

from __future__ import annotations

from typing import Any

from loguru import logger
from scalecodec.base import RuntimeConfigurationObject, ScaleBytes
from scalecodec.type_registry import load_type_registry_preset

from chaincore.models import ChainEvent, ModuleErrorInfo


class MetadataError(Exception):
    pass


class RuntimeMetadata:
    def __init__(self, metadata_hex: str) -> None:
        self.runtime_config = RuntimeConfigurationObject()
        self.runtime_config.update_type_registry(load_type_registry_preset(name="core"))
        self.runtime_config.update_type_registry(load_type_registry_preset(name="legacy"))
        try:
            self.metadata = self.runtime_config.create_scale_object(
                "MetadataVersioned", data=ScaleBytes(metadata_hex)
            )
            self.metadata.decode()
        except Exception as e:
            raise MetadataError(f"Failed to decode runtime metadata: {e}") from e
        self.runtime_config.add_portable_registry(self.metadata)

    def _pallet(self, name: str) -> Any | None:
        for pallet in self.metadata.pallets:
            if pallet.name == name:
                return pallet
        return None

    def _storage(self, pallet_name: str, item_name: str) -> Any:
        pallet = self._pallet(pallet_name)
        storage = None
        if pallet is not None and pallet.storage:
            storage = next((item for item in pallet.storage if item.name == item_name), None)
        if storage is None:
            raise MetadataError(f"Runtime has no {pallet_name}.{item_name} storage")
        return storage

    def _decode_storage_value(self, pallet_name: str, item_name: str, storage_hex: str) -> Any:
        storage = self._storage(pallet_name, item_name)
        obj = self.runtime_config.create_scale_object(
            type_string=storage.get_value_type_string(),
            data=ScaleBytes(storage_hex),
            metadata=self.metadata,
        )
        try:
            obj.decode()
        except Exception as e:
            raise MetadataError(f"Failed to decode {pallet_name}.{item_name}: {e}") from e
        return obj.value

    def has_call(self, pallet_name: str, call_name: str) -> bool:
        pallet = self._pallet(pallet_name)
        if pallet is None or not pallet.calls:
            return False
        return any(call.name == call_name for call in pallet.calls)

    def module_error(self, module_index: int, error_index: int) -> ModuleErrorInfo | None:
        section = None
        for pallet in self.metadata.pallets:
            if pallet.value["index"] == module_index:
                section = pallet.value["name"]
                break
        if section is None:
            return None

        try:
            error = self.metadata.get_module_error(
                module_index=module_index, error_index=error_index
            )
        except (IndexError, KeyError, TypeError) as e:
            logger.debug(f"No metadata for error {module_index}/{error_index}: {e}")
            return None
        if error is None:
            return None

        docs = error.value.get("docs") or []
        if isinstance(docs, list):
            docs = " ".join(line.strip() for line in docs if line.strip())
        return ModuleErrorInfo(section=section, name=error.value["name"], docs=docs)

    def decode_events(self, storage_hex: str) -> list[ChainEvent]:
        """Decode the value of System.Events at some block."""
        events: list[ChainEvent] = []
        for record in self._decode_storage_value("System", "Events", storage_hex):
            event = record.get("event") or {}
            events.append(
                ChainEvent(
                    pallet=record.get("module_id") or event.get("module_id", ""),
                    name=record.get("event_id") or event.get("event_id", ""),
                    attributes=record.get("attributes", event.get("attributes")),
                    extrinsic_index=record.get("extrinsic_idx"),
                )
            )
        return events

    def decode_account_free(self, storage_hex: str | None) -> int:
        """
        Free balance from a System.Account value, in minor units.

        The value is decoded with the runtime's own AccountInfo type. An
        absent entry means the account does not exist: balance 0.
        """
        if not storage_hex:
            return 0
        account = self._decode_storage_value("System", "Account", storage_hex)
        return int(account["data"]["free"])

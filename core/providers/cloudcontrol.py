"""Provider backed by the AWS Cloud Control API."""

from __future__ import annotations

import json
import re
import time
from typing import Any, Callable

import boto3

from core.constants import CLOUDFORMATION_TYPES
from core.errors import ProviderCreationError, UnsupportedKindError

_TRANSIENT_HANDLER_CODES = {"Throttling", "ServiceInternalError", "NetworkFailure", "ServiceLimitExceeded"}
_TERMINAL_STATUSES = {"SUCCESS", "FAILED", "CANCEL_COMPLETE"}
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def _snake(name: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", name).lower()


class CloudControlProvider:
    """Create and delete resources through ``cloudcontrol`` using CloudFormation type names."""

    def __init__(
        self,
        client: Any | None = None,
        *,
        type_names: dict[str, str] | None = None,
        poll_interval: float = 2.0,
        max_polls: int = 300,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._client = client or boto3.client("cloudcontrol")
        self.type_names = dict(CLOUDFORMATION_TYPES)
        self.type_names.update(type_names or {})
        self.poll_interval = poll_interval
        self.max_polls = max_polls
        self._sleep = sleep

    def create(self, kind: str, properties: dict[str, Any]) -> dict[str, Any]:
        type_name = self._type_name(kind)
        response = self._client.create_resource(TypeName=type_name, DesiredState=json.dumps(properties, default=str))
        event = self._await(response["ProgressEvent"], kind)
        identifier = event["Identifier"]

        described = self._client.get_resource(TypeName=type_name, Identifier=identifier)
        raw = described.get("ResourceDescription", {}).get("Properties") or "{}"
        outputs = {_snake(key): value for key, value in json.loads(raw).items()}
        outputs["id"] = identifier
        if "arn" not in outputs:
            # types such as AWS::SNS::Topic expose their ARN as <Type>Arn or as the identifier
            arn = next((value for key, value in sorted(outputs.items()) if key.endswith("_arn")), None)
            if arn is None and str(identifier).startswith("arn:"):
                arn = identifier
            if arn is not None:
                outputs["arn"] = arn
        return outputs

    def delete(self, kind: str, physical_id: str) -> None:
        response = self._client.delete_resource(TypeName=self._type_name(kind), Identifier=physical_id)
        self._await(response["ProgressEvent"], kind)

    # ------------------------------------------------------------------
    def _type_name(self, kind: str) -> str:
        try:
            return self.type_names[kind]
        except KeyError:
            raise UnsupportedKindError([kind]) from None

    def _await(self, event: dict[str, Any], kind: str) -> dict[str, Any]:
        polls = 0
        while event.get("OperationStatus") not in _TERMINAL_STATUSES:
            if polls >= self.max_polls:
                raise ProviderCreationError(
                    f"Timed out waiting for {event.get('Operation', 'operation')} on {kind}",
                    kind=kind,
                    transient=True,
                )
            self._sleep(self.poll_interval)
            polls += 1
            status = self._client.get_resource_request_status(RequestToken=event["RequestToken"])
            event = status["ProgressEvent"]

        if event["OperationStatus"] != "SUCCESS":
            code = event.get("ErrorCode", "")
            message = event.get("StatusMessage") or f"{kind} operation ended with {event['OperationStatus']}"
            raise ProviderCreationError(message, kind=kind, transient=code in _TRANSIENT_HANDLER_CODES)
        return event


__all__ = ["CloudControlProvider"]

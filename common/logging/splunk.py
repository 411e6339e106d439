# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Splunk compatible json log format.

Every record is rendered as a single json line. Records logged with a
`SplunkExtendedLogEntry` as message additionally carry the entry fields as
top level keys so they can be searched for.
"""

import datetime
import json
import logging
from enum import Enum

from pydantic import BaseModel


class SplunkExtendedLogEntry(BaseModel):
    """Log message with additional, searchable fields."""

    message: str

    def extended_fields(self) -> dict[str, object]:
        """All fields except the message, enums replaced by their values. Unset fields are omitted."""
        fields = {}
        for name, value in iter(self):
            if name == "message" or value is None:
                continue
            if isinstance(value, Enum):
                value = value.value
            elif not isinstance(value, (int, float, bool, str)):
                value = str(value)
            fields[name] = value
        return fields

    def __str__(self) -> str:
        details = " ".join(f"{k}={v}" for k, v in self.extended_fields().items())
        return f"{self.message} {details}" if details else self.message


class SplunkFormatter(logging.Formatter):
    """Formats records as json objects understood by the splunk forwarder"""

    def __init__(self, *args, defaults: dict[str, object] | None = None, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.field_defaults = defaults or {}

    def _get(self, record: logging.LogRecord, name: str) -> object:
        return getattr(record, name, self.field_defaults.get(name))

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.datetime.fromtimestamp(record.created).astimezone()
        data = {
            "@timestamp": timestamp.isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "app": self._get(record, "app_name"),
            "hash": self._get(record, "correlation_id"),
            "logger": record.name,
            "message": record.getMessage(),
        }
        if isinstance(record.msg, SplunkExtendedLogEntry):
            data.update(record.msg.extended_fields())
        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)
        return json.dumps(data)

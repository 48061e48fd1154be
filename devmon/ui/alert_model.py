"""Qt model for the alert feed using model/view pattern."""

from collections import deque

from PySide6.QtCore import QAbstractTableModel, QModelIndex, Qt
from PySide6.QtGui import QColor

SEVERITY_COLUMN = 3

_SEVERITY_COLORS = {
    "success": QColor("#2e7d32"),
    "warning": QColor("#ef6c00"),
    "danger": QColor("#c62828"),
}


class AlertTableModel(QAbstractTableModel):
    """Table model for published alerts.

    Rows are alert payload dicts as published by the engine. Stores them in
    a deque with automatic row limit management via
    beginRemoveRows/endRemoveRows.
    """

    def __init__(self, max_rows: int = 500, parent=None):
        super().__init__(parent)
        self._alerts = deque()  # No maxlen - we manage manually
        self._max_rows = max_rows

        self._columns = ["Time", "Device", "Event", "Severity", "Message"]
        self._keys = ["timestamp", "deviceName", "eventType", "severity", "message"]

    def rowCount(self, parent=QModelIndex()):
        """Return the number of rows (alerts)."""
        if parent.isValid():
            return 0
        return len(self._alerts)

    def columnCount(self, parent=QModelIndex()):
        """Return the number of columns."""
        if parent.isValid():
            return 0
        return len(self._columns)

    def data(self, index, role=Qt.DisplayRole):
        """Return data for a given cell."""
        if not index.isValid():
            return None

        if index.row() >= len(self._alerts) or index.row() < 0:
            return None

        alert = self._alerts[index.row()]
        col = index.column()

        if role == Qt.DisplayRole:
            if 0 <= col < len(self._keys):
                return str(alert.get(self._keys[col], ""))

        elif role == Qt.ForegroundRole:
            if col == SEVERITY_COLUMN:
                return _SEVERITY_COLORS.get(alert.get("severity"))

        elif role == Qt.TextAlignmentRole:
            if col == SEVERITY_COLUMN:
                return Qt.AlignCenter
            return Qt.AlignLeft | Qt.AlignVCenter

        return None

    def headerData(self, section, orientation, role=Qt.DisplayRole):
        """Return header data."""
        if role == Qt.DisplayRole and orientation == Qt.Horizontal:
            if 0 <= section < len(self._columns):
                return self._columns[section]
        return None

    def flags(self, index):
        """Return item flags (read-only)."""
        if not index.isValid():
            return Qt.NoItemFlags
        return Qt.ItemIsEnabled | Qt.ItemIsSelectable

    def append_alert(self, alert: dict):
        """Append a new alert to the model.

        If the model is at capacity, the oldest row is removed first, then
        the new row is added, keeping attached views in sync.
        """
        if len(self._alerts) >= self._max_rows:
            self.beginRemoveRows(QModelIndex(), 0, 0)
            self._alerts.popleft()
            self.endRemoveRows()

        new_row = len(self._alerts)
        self.beginInsertRows(QModelIndex(), new_row, new_row)
        self._alerts.append(dict(alert))
        self.endInsertRows()

    def clear(self):
        """Clear all alerts from the model."""
        if len(self._alerts) == 0:
            return

        self.beginRemoveRows(QModelIndex(), 0, len(self._alerts) - 1)
        self._alerts.clear()
        self.endRemoveRows()

    def get_alerts(self):
        """Get all alert payloads, oldest first."""
        return list(self._alerts)

"""Main window for DevMon dashboard."""

import logging

from PySide6.QtCore import QSortFilterProxyModel, Qt
from PySide6.QtGui import QCloseEvent
from PySide6.QtWidgets import (
    QComboBox,
    QFileDialog,
    QFrame,
    QGroupBox,
    QHBoxLayout,
    QHeaderView,
    QLabel,
    QMainWindow,
    QPushButton,
    QTableView,
    QTableWidget,
    QTableWidgetItem,
    QVBoxLayout,
    QWidget,
)

from devmon.engine import MonitorEngine
from devmon.errors import FaultConflictError, MonitorError
from devmon.events import EventKind, SignalEventSink
from devmon.export import export_filename, write_alerts_csv
from devmon.scheduler import MonitorScheduler
from devmon.ui.alert_model import SEVERITY_COLUMN, AlertTableModel

logger = logging.getLogger(__name__)

DEVICE_COLUMNS = ["Device", "IP", "Type", "Status", "Latency (ms)", "Bandwidth (Mbps)", "Loss (%)"]


class MainWindow(QMainWindow):
    """Dashboard showing live device state and the alert feed."""

    def __init__(self, engine: MonitorEngine, scheduler: MonitorScheduler, sink: SignalEventSink):
        super().__init__()
        self.setWindowTitle("DevMon")
        self.setGeometry(100, 100, 1100, 700)

        self.engine = engine
        self.scheduler = scheduler
        self.sink = sink

        # Round interval configuration - single source of truth
        self.INTERVAL_OPTIONS = {"2 s": 2000, "5 s": 5000, "10 s": 10000, "30 s": 30000}
        self.DEFAULT_INTERVAL_TEXT = "5 s"

        self.SEVERITY_OPTIONS = ["All", "success", "warning", "danger"]

        # device_id -> table row
        self._device_rows = {}

        self.alert_model = AlertTableModel(max_rows=500, parent=self)
        self.alert_proxy = QSortFilterProxyModel(self)
        self.alert_proxy.setSourceModel(self.alert_model)
        self.alert_proxy.setFilterKeyColumn(SEVERITY_COLUMN)

        self.setup_ui()

        self.sink.device_update.connect(self.on_device_update)
        self.sink.alert.connect(self.on_alert)
        self.scheduler.error.connect(self.on_probe_error)

        # Bring the view up to date with state published before it existed
        for event in self.engine.replay_events():
            if event.kind == EventKind.DEVICE_UPDATE:
                self.on_device_update(event.payload)
            else:
                self.on_alert(event.payload)

    def closeEvent(self, event: QCloseEvent) -> None:
        """Handle application close event - clean up resources."""
        self.scheduler.stop()
        self.scheduler.thread_pool.waitForDone(1000)
        super().closeEvent(event)

    def setup_ui(self):
        """Set up the main user interface."""
        central_widget = QWidget()
        self.setCentralWidget(central_widget)

        main_layout = QHBoxLayout(central_widget)
        main_layout.addWidget(self.create_control_panel(), 0)
        main_layout.addWidget(self.create_monitor_area(), 1)

    def create_control_panel(self):
        """Create the left control panel."""
        panel = QFrame()
        panel.setFrameStyle(QFrame.Box)
        panel.setFixedWidth(250)

        layout = QVBoxLayout(panel)

        title = QLabel("Control Panel")
        title.setAlignment(Qt.AlignCenter)
        title.setStyleSheet("font-weight: bold; font-size: 14px; margin: 10px;")
        layout.addWidget(title)

        # Monitoring controls
        controls_group = QGroupBox("Monitoring")
        controls_layout = QVBoxLayout(controls_group)

        self.start_button = QPushButton("Start Monitoring")
        self.start_button.clicked.connect(self.start_monitoring)
        controls_layout.addWidget(self.start_button)

        self.stop_button = QPushButton("Stop Monitoring")
        self.stop_button.clicked.connect(self.stop_monitoring)
        self.stop_button.setEnabled(False)
        controls_layout.addWidget(self.stop_button)

        interval_layout = QHBoxLayout()
        interval_layout.addWidget(QLabel("Interval:"))
        self.interval_combo = QComboBox()
        self.interval_combo.addItems(list(self.INTERVAL_OPTIONS.keys()))
        self.interval_combo.setCurrentText(self.DEFAULT_INTERVAL_TEXT)
        self.interval_combo.currentTextChanged.connect(self.on_interval_changed)
        interval_layout.addWidget(self.interval_combo)
        controls_layout.addLayout(interval_layout)

        layout.addWidget(controls_group)

        # Fault injection
        fault_group = QGroupBox("Simulate Outage")
        fault_layout = QVBoxLayout(fault_group)

        self.device_combo = QComboBox()
        self.device_combo.addItems(self.engine.device_ids)
        fault_layout.addWidget(self.device_combo)

        self.simulate_button = QPushButton("Simulate Device Down")
        self.simulate_button.clicked.connect(self.simulate_device_down)
        fault_layout.addWidget(self.simulate_button)

        layout.addWidget(fault_group)

        # Alert log
        log_group = QGroupBox("Alert Log")
        log_layout = QVBoxLayout(log_group)

        self.severity_combo = QComboBox()
        self.severity_combo.addItems(self.SEVERITY_OPTIONS)
        self.severity_combo.currentTextChanged.connect(self.on_severity_filter_changed)
        log_layout.addWidget(self.severity_combo)

        self.export_button = QPushButton("Export CSV")
        self.export_button.clicked.connect(self.export_csv)
        log_layout.addWidget(self.export_button)

        layout.addWidget(log_group)

        layout.addStretch()

        self.status_label = QLabel("Status: Ready")
        self.status_label.setAlignment(Qt.AlignCenter)
        self.status_label.setWordWrap(True)
        self.status_label.setStyleSheet("font-weight: bold;")
        layout.addWidget(self.status_label)

        return panel

    def create_monitor_area(self):
        """Create the right area with device and alert tables."""
        area = QFrame()
        area.setFrameStyle(QFrame.Box)

        layout = QVBoxLayout(area)

        devices_title = QLabel("Devices")
        devices_title.setAlignment(Qt.AlignCenter)
        devices_title.setStyleSheet("font-weight: bold; font-size: 14px; margin: 10px;")
        layout.addWidget(devices_title)

        self.device_table = QTableWidget()
        self.device_table.setColumnCount(len(DEVICE_COLUMNS))
        self.device_table.setHorizontalHeaderLabels(DEVICE_COLUMNS)
        self.device_table.horizontalHeader().setSectionResizeMode(QHeaderView.Stretch)
        self.device_table.setSelectionBehavior(QTableWidget.SelectRows)
        self.device_table.setRowCount(0)
        layout.addWidget(self.device_table)

        alerts_title = QLabel("Alerts")
        alerts_title.setAlignment(Qt.AlignCenter)
        alerts_title.setStyleSheet("font-weight: bold; font-size: 14px; margin: 10px;")
        layout.addWidget(alerts_title)

        self.alert_view = QTableView()
        self.alert_view.setModel(self.alert_proxy)
        self.alert_view.setAlternatingRowColors(True)
        self.alert_view.setSelectionBehavior(QTableView.SelectRows)
        header = self.alert_view.horizontalHeader()
        for col in range(self.alert_model.columnCount() - 1):
            header.setSectionResizeMode(col, QHeaderView.ResizeToContents)
        header.setSectionResizeMode(self.alert_model.columnCount() - 1, QHeaderView.Stretch)
        layout.addWidget(self.alert_view, 1)

        return area

    def start_monitoring(self):
        """Handle start button click."""
        self.scheduler.start()
        self.start_button.setEnabled(False)
        self.stop_button.setEnabled(True)
        self.status_label.setText("Status: Monitoring")

    def stop_monitoring(self):
        """Handle stop button click."""
        self.scheduler.stop()
        self.start_button.setEnabled(True)
        self.stop_button.setEnabled(False)
        self.status_label.setText("Status: Stopped")

    def on_interval_changed(self, text: str):
        if text in self.INTERVAL_OPTIONS:
            self.scheduler.set_interval(self.INTERVAL_OPTIONS[text])

    def on_severity_filter_changed(self, text: str):
        if text == "All":
            self.alert_proxy.setFilterFixedString("")
        else:
            self.alert_proxy.setFilterFixedString(text)

    def simulate_device_down(self):
        """Force the selected device down for the configured duration."""
        device_id = self.device_combo.currentText()
        try:
            injection = self.engine.inject_fault(device_id)
        except FaultConflictError as e:
            self.status_label.setText(
                f"Status: {device_id} already down ({e.remaining_seconds}s remaining)"
            )
            return
        except MonitorError as e:
            self.status_label.setText(f"Status: {e}")
            return

        self.status_label.setText(
            f"Status: {injection.device_name} down until {injection.recovery_time}"
        )

    def export_csv(self):
        """Export the retained alert log to a CSV file."""
        records = self.engine.alert_log()
        if not records:
            self.status_label.setText("Status: No alerts to export")
            return

        default_name = export_filename(self.engine.clock.now(), self.engine.tz)
        filename, _ = QFileDialog.getSaveFileName(
            self, "Export Alert Log to CSV", default_name, "CSV Files (*.csv)"
        )

        if not filename:
            return

        if not filename.lower().endswith(".csv"):
            filename += ".csv"

        try:
            write_alerts_csv(filename, records, self.engine.tz)
            self.status_label.setText(f"Status: Exported {len(records)} alerts")

        except OSError as e:
            self.status_label.setText(f"Status: Export failed - {type(e).__name__}")
        except UnicodeEncodeError:
            self.status_label.setText("Status: Export failed - Encoding error")
        except Exception:
            logger.exception("Unexpected error during CSV export: file=%s", filename)
            self.status_label.setText("Status: Export failed - Unexpected error")

    def on_device_update(self, payload: dict):
        """Refresh the row of the device described by ``payload``."""
        device_id = payload.get("id")
        row = self._device_rows.get(device_id)
        if row is None:
            row = self.device_table.rowCount()
            self.device_table.insertRow(row)
            self._device_rows[device_id] = row

        status = payload.get("status", "")
        if payload.get("injectedFault"):
            status = f"{status} (simulated)"

        values = [
            payload.get("name", device_id),
            payload.get("ip", ""),
            payload.get("type", ""),
            status,
            f"{payload.get('latency', 0):.2f}",
            f"{payload.get('bandwidth', 0):.2f}",
            f"{payload.get('packetLoss', 0):.2f}",
        ]

        for col, value in enumerate(values):
            item = QTableWidgetItem(value)
            item.setFlags(item.flags() & ~Qt.ItemIsEditable)
            if col >= 4:
                item.setTextAlignment(Qt.AlignRight | Qt.AlignVCenter)
            self.device_table.setItem(row, col, item)

    def on_alert(self, payload: dict):
        self.alert_model.append_alert(payload)
        self.alert_view.scrollToBottom()

    def on_probe_error(self, device_id: str, error_msg: str):
        self.status_label.setText(f"Status: Probe error on {device_id} - {error_msg}")

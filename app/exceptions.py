# app/exceptions.py
"""Domain errors raised by the stores and the engine."""


class AlertNotFound(Exception):
    def __init__(self, alert_id: int):
        super().__init__(f"Alert {alert_id} not found")
        self.alert_id = alert_id


class EscalationNotFound(Exception):
    def __init__(self, escalation_id: int):
        super().__init__(f"Escalation {escalation_id} not found")
        self.escalation_id = escalation_id


class ProjectNotFound(Exception):
    def __init__(self, project_id: int):
        super().__init__(f"Project {project_id} not found")
        self.project_id = project_id


class DuplicateAlertError(Exception):
    """The store rejected a create because the record already exists."""


class StaleAlertError(Exception):
    """An escalation target changed (acknowledged or re-escalated) before commit."""


class InvalidEngineConfig(ValueError):
    pass

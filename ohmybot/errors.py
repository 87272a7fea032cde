class OhMyBotError(Exception):
    """Base class for failures that end a single request."""


class NoHashtagFound(OhMyBotError):
    def __init__(self, message="no hashtags found"):
        super().__init__(message)


class FeedbackNotFound(OhMyBotError, KeyError):
    def __init__(self, feedback_id):
        self.feedback_id = feedback_id
        super().__init__(f"no feedback with id {feedback_id}")

    def __str__(self):
        return self.args[0]


class InvalidClarificationTarget(OhMyBotError):
    def __init__(self, message="not a real message"):
        super().__init__(message)


class ExternalTransformFailure(OhMyBotError):
    """The text-obscuring service failed; carries the raw error message."""


class UnrecognizedCommand(OhMyBotError):
    def __init__(self, text=""):
        self.text = text
        super().__init__("unrecognized command")

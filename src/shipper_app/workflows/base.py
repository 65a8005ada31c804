"""Linear step wizards shared by the customer workflows."""
import logging

from shared.utils import to_kg, to_cm


class WorkflowError(Exception):
    """A step cannot be left yet; the message is shown to the customer as-is."""
    pass


def package_measurements(package):
    """Flatten a serialized package into kg / cm numbers."""
    weight = package.get('weight') or {}
    dims = package.get('dimensions') or {}
    dim_unit = dims.get('unit', 'cm')
    return {
        'weight': to_kg(weight.get('value') or 0, weight.get('unit', 'kg')),
        'length': to_cm(dims.get('length') or 0, dim_unit),
        'width': to_cm(dims.get('width') or 0, dim_unit),
        'height': to_cm(dims.get('height') or 0, dim_unit),
    }


class Workflow:
    """Base class for wizards that walk through ``STEPS`` in order.

    Subclasses define ``STEPS`` and override ``validate_step`` (returning the
    error message for the current step, or None) and optionally ``on_enter``.
    """

    STEPS = ()
    # Steps from which the customer may not go back
    LOCKED_STEPS = ()

    def __init__(self, api):
        self.api = api
        self.step_index = 0
        self.submitting = False
        self.error = None
        self.logger = logging.getLogger(self.__class__.__name__)

    @property
    def current_step(self):
        return self.STEPS[self.step_index]

    @property
    def is_last_step(self):
        return self.step_index == len(self.STEPS) - 1

    def validate_step(self, step):
        return None

    def on_enter(self, step):
        pass

    def can_proceed(self):
        return self.validate_step(self.current_step) is None

    def go_to(self, step):
        self.step_index = self.STEPS.index(step)
        self.on_enter(step)

    def next(self):
        message = self.validate_step(self.current_step)
        if message:
            raise WorkflowError(message)
        if not self.is_last_step:
            self.go_to(self.STEPS[self.step_index + 1])
        return self.current_step

    def can_go_back(self):
        return self.step_index > 0 and self.current_step not in self.LOCKED_STEPS

    def back(self):
        if not self.can_go_back():
            raise WorkflowError('You cannot go back from this step')
        self.step_index -= 1
        return self.current_step

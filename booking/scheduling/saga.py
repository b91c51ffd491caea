"""
Compensating-action saga for multi-record booking workflows.

A slot reservation and the appointment that owns it are written in separate
transactions. Each completed step registers the action that undoes it; when a
later step raises, the registered compensations run newest-first and the
original error propagates unchanged.

    with BookingSaga('create appointment') as saga:
        saga.run('reserve slot', reserve, compensation=release)
        appointment = saga.run('persist appointment', persist)
"""

from flask import current_app

from booking import db
from booking.errors import NotFoundError
from booking.utils.audit import log_audit


class BookingSaga:

    def __init__(self, name, retries=None):
        self.name = name
        self.retries = retries
        self.completed = []
        self.orphaned = []
        self._compensations = []

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc_type is None:
            return False
        # The failed step may have left the session mid-transaction
        db.session.rollback()
        current_app.logger.warning(
            f"{self.name}: step failed after {self.completed or 'no steps'} ({exc}); compensating"
        )
        self.compensate()
        return False

    def run(self, label, action, compensation=None, context=None):
        result = action()
        self.completed.append(label)
        if compensation is not None:
            self._compensations.append((label, compensation, context or {}))
        return result

    def settle(self, label, action, context=None):
        """
        Run a cleanup step after the point of no return.

        The step is retried like a compensation; a final failure is reported
        as an orphan instead of raised, since the primary write already
        committed. Returns True when the step went through.
        """
        if self._attempt(label, action, context or {}):
            self.completed.append(label)
            return True
        self.orphaned.append(label)
        return False

    def compensate(self):
        while self._compensations:
            label, compensation, context = self._compensations.pop()
            if not self._attempt(label, compensation, context):
                self.orphaned.append(label)

    def _attempt(self, label, compensation, context):
        retries = self.retries
        if retries is None:
            retries = current_app.config.get('SLOT_RELEASE_RETRIES', 2)

        last_error = None
        for attempt in range(1, retries + 2):
            try:
                compensation()
                return True
            except NotFoundError:
                # Nothing left to undo
                return True
            except Exception as e:
                db.session.rollback()
                last_error = e
                current_app.logger.warning(
                    f"{self.name}: compensation for '{label}' failed (attempt {attempt}): {e}"
                )

        current_app.logger.error(
            f"{self.name}: compensation for '{label}' gave up; record left inconsistent {context}: {last_error}"
        )
        log_audit(
            'compensation_failed',
            'saga',
            details={'saga': self.name, 'step': label, 'error': str(last_error), **context}
        )
        return False

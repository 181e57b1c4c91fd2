# src/hysim_core/validation/issue_codes.py
import logging
from enum import Enum

logger = logging.getLogger(__name__)


class DiagramIssueCode(Enum):
    """
    Registry of diagram validation issue codes and their message templates.
    Each enum member's value is a tuple: (code_str, message_template_str).
    """

    # --- Diagram-level Issues (DIAG_...) ---
    DIAG_EMPTY = ("DIAG_EMPTY", "Diagram '{diagram_name}' contains no systems.")
    DIAG_BUILDER_REUSED = ("DIAG_BUILDER_REUSED", "The builder for diagram '{diagram_name}' has already built a diagram and cannot be reused.")

    # --- Subsystem Ownership Issues (SYS_...) ---
    SYS_ADDED_TWICE = ("SYS_ADDED_TWICE", "System '{system_name}' was added to the builder more than once.")
    SYS_ALREADY_OWNED = ("SYS_ALREADY_OWNED", "System '{system_name}' already belongs to diagram '{owner_fqn}'. A system may be placed in at most one diagram.")
    SYS_NAME_DUPLICATE = ("SYS_NAME_DUPLICATE", "Subsystem name '{system_name}' is used by {count} systems. Subsystem names must be unique within a diagram.")

    # --- Connection Issues (CONN_...) ---
    CONN_FOREIGN_SYSTEM = ("CONN_FOREIGN_SYSTEM", "Port '{port_label}' belongs to system '{system_name}', which was not added to this builder.")
    CONN_SIZE_MISMATCH = ("CONN_SIZE_MISMATCH", "Cannot connect output '{source_label}' (size {source_size}) to input '{dest_label}' (size {dest_size}).")
    CONN_INPUT_MULTIPLY_DRIVEN = ("CONN_INPUT_MULTIPLY_DRIVEN", "Input '{dest_label}' has {count} value sources (connections or exports); exactly one is allowed.")
    CONN_ALGEBRAIC_LOOP = ("CONN_ALGEBRAIC_LOOP", "Connections form an algebraic loop through: {cycle}.")

    # --- Input Satisfaction Issues (INPUT_...) ---
    INPUT_UNCONNECTED = ("INPUT_UNCONNECTED", "Required input '{dest_label}' is neither connected nor exported.")
    INPUT_OPTIONAL_UNCONNECTED = ("INPUT_OPTIONAL_UNCONNECTED", "Optional input '{dest_label}' is neither connected nor exported and will evaluate to no value.")

    # --- Export Issues (EXPORT_...) ---
    EXPORT_NAME_DUPLICATE = ("EXPORT_NAME_DUPLICATE", "Exported {kind} port name '{port_name}' is used more than once.")
    EXPORT_SIZE_MISMATCH = ("EXPORT_SIZE_MISMATCH", "Exported input '{port_name}' fans out to ports of different sizes: {sizes}.")

    @property
    def code(self) -> str:
        return self.value[0]

    @property
    def template(self) -> str:
        return self.value[1]

    def format_message(self, **kwargs) -> str:
        """Formats the message template with provided keyword arguments."""
        try:
            return self.template.format(**kwargs)
        except KeyError as e:
            logger.error(f"Missing key {e} for formatting message template of {self.name} (code: {self.code}): '{self.template}'. Provided args: {kwargs}")
            return f"Error formatting message for {self.code}: Missing key {e}. Template: '{self.template}' Args: {kwargs}"

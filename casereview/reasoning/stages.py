# casereview/reasoning/stages.py
from enum import Enum


class Stage(str, Enum):
    SYMPTOMS = "symptoms"
    CRITERIA = "criteria"
    DIAGNOSES = "diagnoses"
    TREATMENTS = "treatments"
    DONE = "done"


# Working stages in execution order (DONE is the terminal marker).
STAGE_ORDER = (
    Stage.SYMPTOMS,
    Stage.CRITERIA,
    Stage.DIAGNOSES,
    Stage.TREATMENTS,
)

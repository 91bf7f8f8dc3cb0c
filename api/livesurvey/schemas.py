import uuid
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, TypeAdapter

QUESTION_TYPES = ("singleChoice", "multipleChoice", "rating", "freeText", "ranking", "slider")
CHOICE_TYPES = {"singleChoice", "multipleChoice", "ranking"}
NUMERIC_TYPES = {"rating", "slider"}


def new_question_id() -> str:
    return uuid.uuid4().hex


class _QuestionBase(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: StrictStr = Field(default_factory=new_question_id, min_length=1)
    text: StrictStr = ""


class SingleChoiceQuestion(_QuestionBase):
    type: Literal["singleChoice"] = "singleChoice"
    options: list[StrictStr] = Field(default_factory=list)


class MultipleChoiceQuestion(_QuestionBase):
    type: Literal["multipleChoice"] = "multipleChoice"
    options: list[StrictStr] = Field(default_factory=list)


class RankingQuestion(_QuestionBase):
    type: Literal["ranking"] = "ranking"
    options: list[StrictStr] = Field(default_factory=list)


class RatingQuestion(_QuestionBase):
    type: Literal["rating"] = "rating"
    min: StrictInt = 1
    max: StrictInt = 5


class SliderQuestion(_QuestionBase):
    type: Literal["slider"] = "slider"
    min: StrictInt = 1
    max: StrictInt = 100
    step: StrictInt = 1


class FreeTextQuestion(_QuestionBase):
    type: Literal["freeText"] = "freeText"


Question = Annotated[
    Union[
        SingleChoiceQuestion,
        MultipleChoiceQuestion,
        RankingQuestion,
        RatingQuestion,
        SliderQuestion,
        FreeTextQuestion,
    ],
    Field(discriminator="type"),
]

QUESTION_ADAPTER: TypeAdapter[Question] = TypeAdapter(Question)
QUESTION_LIST_ADAPTER: TypeAdapter[list[Question]] = TypeAdapter(list[Question])


def parse_questions(raw: Any) -> list[Question]:
    return QUESTION_LIST_ADAPTER.validate_python(raw or [])


def dump_questions(questions: list[Question]) -> list[dict[str, Any]]:
    return QUESTION_LIST_ADAPTER.dump_python(questions, mode="json")


class SurveyWriteRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: StrictStr
    questions: list[Question] = Field(default_factory=list)


class SurveyCreateRequest(SurveyWriteRequest):
    creation_key: StrictStr | None = Field(default=None, max_length=120, pattern=r"^[^\x00]*$")


class AnswerSubmission(BaseModel):
    model_config = ConfigDict(extra="forbid")

    question_index: StrictInt
    value: Any


class _EditBase(BaseModel):
    model_config = ConfigDict(extra="forbid")


class AddQuestionEdit(_EditBase):
    op: Literal["add_question"]
    question_type: StrictStr
    overrides: dict[str, Any] = Field(default_factory=dict)


class EditQuestionEdit(_EditBase):
    op: Literal["edit_question"]
    index: StrictInt
    changes: dict[str, Any]


class RemoveQuestionEdit(_EditBase):
    op: Literal["remove_question"]
    index: StrictInt


class MoveQuestionEdit(_EditBase):
    op: Literal["move_question"]
    index: StrictInt
    new_index: StrictInt


class AddOptionEdit(_EditBase):
    op: Literal["add_option"]
    index: StrictInt
    text: StrictStr = ""


class UpdateOptionEdit(_EditBase):
    op: Literal["update_option"]
    index: StrictInt
    option_index: StrictInt
    text: StrictStr


class RemoveOptionEdit(_EditBase):
    op: Literal["remove_option"]
    index: StrictInt
    option_index: StrictInt


class RenameSurveyEdit(_EditBase):
    op: Literal["rename"]
    title: StrictStr


SurveyEdit = Annotated[
    Union[
        AddQuestionEdit,
        EditQuestionEdit,
        RemoveQuestionEdit,
        MoveQuestionEdit,
        AddOptionEdit,
        UpdateOptionEdit,
        RemoveOptionEdit,
        RenameSurveyEdit,
    ],
    Field(discriminator="op"),
]


class SurveyEditRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    edits: list[SurveyEdit] = Field(min_length=1, max_length=200)

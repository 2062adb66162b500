"""Request body schemas.

Every JSON body is validated here before any business logic runs; routes
only ever see a fully typed model.
"""

from typing import Optional, Type, TypeVar

from flask import request
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from quizapp.errors import ApiError

T = TypeVar('T', bound=BaseModel)


class _Body(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra='ignore')


class ViewQuestionRequest(_Body):
    session_id: int = Field(alias='sessionId', gt=0)
    question_index: int = Field(alias='questionIndex')


class AnswerRequest(_Body):
    session_id: int = Field(alias='sessionId', gt=0)
    question_id: int = Field(alias='questionId', gt=0)
    option_id: int = Field(alias='optionId', gt=0)
    time_spent_ms: float = Field(alias='timeSpentMs', default=0, allow_inf_nan=False)


class TimeoutRequest(_Body):
    session_id: int = Field(alias='sessionId', gt=0)
    question_id: int = Field(alias='questionId', gt=0)


class FinishRequest(_Body):
    session_id: int = Field(alias='sessionId', gt=0)


class TelegramAuthRequest(_Body):
    init_data: str = Field(alias='initData', default='')


class QuizCacheRequest(_Body):
    quiz_id: Optional[int] = Field(alias='quizId', default=None)
    invalidate_all: bool = Field(alias='invalidateAll', default=False)


def parse_body(schema: Type[T]) -> T:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ApiError('invalid_body')
    try:
        return schema.model_validate(data)
    except ValidationError as exc:
        fields = [
            {'field': '.'.join(str(part) for part in err['loc']), 'message': err['msg']}
            for err in exc.errors()
        ]
        raise ApiError('missing_fields', fields=fields)

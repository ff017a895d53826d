from .hierarchy import Exam, Subject, SubCategory, Track, Topic
from .period_items import ContentItem, QuestionItem, PeriodSlot
from .topic_assignment import TopicAssignment

ITEM_MODELS = {"content": ContentItem, "question": QuestionItem}

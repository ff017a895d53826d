from .hierarchy_repository import HierarchyRepository
from .topic_repository import TopicRepository
from .period_item_repository import PeriodItemRepository, PeriodSlotRepository
from .topic_assignment_repository import TopicAssignmentRepository

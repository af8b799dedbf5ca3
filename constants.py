# Planning horizon
# The engine always plans a fixed working-week window. Days are referred to by
# their short weekday names; "consecutive" means adjacent in this tuple.
WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri")
WEEKDAY_INDEX = {day: i for i, day in enumerate(WEEKDAYS)}

# Operator types and statuses
REGULAR = 'Regular'
FLEX = 'Flex'
COORDINATOR = 'Coordinator'
OPERATOR_TYPES = (REGULAR, FLEX, COORDINATOR)

ACTIVE = 'Active'
WORKER_STATUSES = (ACTIVE, 'Sick', 'Leave')

# Warning kinds reported in a ScheduleResult
SKILL_MISMATCH = 'skill_mismatch'
AVAILABILITY_CONFLICT = 'availability_conflict'
DOUBLE_ASSIGNMENT = 'double_assignment'
UNDERSTAFFED = 'understaffed'
OVERSTAFFED = 'overstaffed'
WARNING_KINDS = (SKILL_MISMATCH, AVAILABILITY_CONFLICT, DOUBLE_ASSIGNMENT, UNDERSTAFFED, OVERSTAFFED)

# Algorithms
# The first three produce an initial schedule from scratch; the rest build on one.
GREEDY = 'greedy'
CONSTRAINT_PROPAGATION = 'constraint_propagation'
MAX_MATCHING = 'max_matching'
TABU = 'tabu'
PARETO = 'pareto'
GAP_FILL = 'gap_fill'
INITIAL_ALGORITHMS = (GREEDY, CONSTRAINT_PROPAGATION, MAX_MATCHING)
ALGORITHMS = INITIAL_ALGORITHMS + (TABU, PARETO, GAP_FILL)

# Objective weights
# Each weight scales one family of soft criteria, both in the per-assignment
# score and in the schedule-level total score.
# - fairness: heavy-task fairness per assignment, workload stddev per schedule
# - workload_balance: prefer workers with fewer assignments so far
# - skill_match: operator-type match and type/task preferences
# - variety: same-task decay and under-used skill bonus
# - heavy_task_spacing: penalty for heavy tasks on consecutive days
DEFAULT_OBJECTIVE_WEIGHTS = {
    'fairness': 0.25,
    'workload_balance': 0.25,
    'skill_match': 0.20,
    'variety': 0.15,
    'heavy_task_spacing': 0.15,
}
OBJECTIVE_NAMES = tuple(DEFAULT_OBJECTIVE_WEIGHTS)

# Per-assignment scoring terms
# All terms are added to SCORE_BASE. Penalties are positive numbers that get subtracted.
SCORE_BASE = 100
SAME_TASK_DECAY = 6               # per consecutive prior day on the same task
SAME_TASK_LIMIT_PENALTY = 40      # once the run reaches max_consecutive_same_task
UNUSED_SKILL_BONUS = 15           # required skill not used yet this week
LIGHTLY_USED_SKILL_BONUS = 5      # required skill used exactly once
MANY_UNUSED_SKILLS_BONUS = 5      # worker still has 3+ unused skills
MANY_UNUSED_SKILLS_THRESHOLD = 3
BELOW_AVERAGE_WORKLOAD_BONUS = 4
ABOVE_AVERAGE_WORKLOAD_PENALTY = 8
WORKLOAD_TOLERANCE = 1            # allowed assignments above team average before penalty
HEAVY_BELOW_AVERAGE_BONUS = 8
HEAVY_ABOVE_AVERAGE_PENALTY = 12
TYPE_MATCH_BONUS = 20             # worker's type is explicitly required and still open
TYPE_FULL_PENALTY = 40            # worker's type is explicitly required but already full
PREFERRED_TASK_BONUS = 5
SCARCE_SKILL_RESERVE_PENALTY = 15  # worker is needed for an open slot few others can fill
# Smallest penalty of all: spacing out heavy tasks is the last-resort rule.
CONSECUTIVE_HEAVY_PENALTY = 10

DEFAULT_MAX_CONSECUTIVE_SAME_TASK = 3

# Default operator-type/task preferences, (operator_type, task_id, bonus, penalty).
# Empty by default; a typical setup gives Flex operators a bonus on a spillover task.
DEFAULT_TYPE_PREFERENCES = []

# Schedule-level objective normalisation
# Raw objective values are mapped onto 0..100 (higher is better).
FAIRNESS_STDDEV_SCALE = 2.0       # stddev at which fairness reaches 0
WORKLOAD_RANGE_SCALE = 5.0        # max-min spread at which balance reaches 0
VARIETY_MAX_UNIQUE = 5.0          # unique tasks per worker that scores 100
HEAVY_PAIR_PENALTY = 25.0         # points lost per consecutive heavy pair

# Soft rules evaluated by the gap filler
# Lower priority number = more important; the highest number is relaxed first.
AVOID_CONSECUTIVE_SAME_TASK = 'avoid-consecutive-same-task'
TASK_VARIETY = 'task-variety'
WORKLOAD_BALANCE = 'workload-balance'
AVOID_CONSECUTIVE_HEAVY = 'avoid-consecutive-heavy'

SOFT_RULE_METADATA = {
    AVOID_CONSECUTIVE_SAME_TASK: {
        'label': 'Avoid Consecutive Days',
        'description': 'Try not to assign the same task 2+ days in a row',
        'default_priority': 1,
    },
    TASK_VARIETY: {
        'label': 'Task Variety',
        'description': 'Prefer assigning different tasks each day',
        'default_priority': 2,
    },
    WORKLOAD_BALANCE: {
        'label': 'Workload Balance',
        'description': 'Prefer operators with fewer total assignments',
        'default_priority': 3,
    },
    AVOID_CONSECUTIVE_HEAVY: {
        'label': 'Avoid Heavy Task Streaks',
        'description': 'Avoid assigning 2 heavy tasks in consecutive days (last resort)',
        'default_priority': 4,
    },
}
SOFT_RULE_IDS = tuple(SOFT_RULE_METADATA)
WORKLOAD_OVERLOAD_FACTOR = 1.2    # load above team average * factor breaks workload-balance

# Gap-filler unfillable reasons
UNFILLABLE_UNAVAILABLE = 'unavailable'
UNFILLABLE_NO_SKILL_MATCH = 'no_skill_match'
UNFILLABLE_NO_CAPACITY = 'no_capacity'

# Search budgets
DEFAULT_TIMEOUT_MS = 5000
DEFAULT_MAX_BACKTRACKS = 10000

TABU_MAX_ITERATIONS = 100
TABU_LIST_SIZE = 20
TABU_NEIGHBORHOOD_SIZE = 60       # neighbors sampled per iteration
TABU_STAGNATION_LIMIT = 20        # iterations without a new best before stopping

PARETO_CANDIDATES = 20
PARETO_TIMEOUT_MS = 10000
PARETO_MAX_WORKERS = 1            # >1 fans candidates out over a thread pool

# Coordinator rotation search bounds
MAX_DAILY_PERMUTATIONS = 5040     # 7! mappings per day before switching to sampling
COORDINATOR_SAMPLE_ATTEMPTS = 2000
MAX_WEEK_COMBINATIONS = 20000     # product of per-day options searched exhaustively
# Week scoring for coordinator rotations
COORDINATOR_REPEAT_PENALTY = 10   # same task on consecutive days
COORDINATOR_SPREAD_PENALTY = 3    # per unit of (max - min) task count for one coordinator
COORDINATOR_VARIETY_BONUS = 2     # per distinct task a coordinator covers

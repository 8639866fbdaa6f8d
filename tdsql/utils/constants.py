"""Constants used throughout the tdsql package."""

# Output formats supported by the streamer
SUPPORTED_OUTPUT_FORMATS = ['table', 'json', 'csv']
DEFAULT_OUTPUT_FORMAT = 'table'

DEFAULT_DATABASE = 'main'
DEFAULT_PAGE_SIZE = 20

# Streaming
OUTPUT_BUFFER_SIZE = 8192
FLUSH_EVERY_ROWS = 100
UNBOUNDED_FLUSH_EVERY_ROWS = 10
NULL_TEXT = 'NULL'

# Completion
TABLE_CACHE_TTL = 30.0  # seconds
COMPLETION_TIMEOUT = 5.0  # seconds
SQL_KEYWORDS = [
    'SELECT', 'FROM', 'WHERE', 'GROUP', 'BY', 'ORDER', 'HAVING', 'LIMIT',
    'INSERT', 'UPDATE', 'DELETE', 'CREATE', 'DROP', 'ALTER', 'TABLE', 'DATABASE', 'SCHEMA',
    'SHOW', 'DESCRIBE', 'DESC', 'EXPLAIN', 'USE', 'WITH', 'AS', 'AND', 'OR', 'NOT',
    'IN', 'EXISTS', 'BETWEEN', 'LIKE', 'IS', 'NULL', 'TRUE', 'FALSE',
    'COUNT', 'SUM', 'AVG', 'MIN', 'MAX', 'DISTINCT', 'CASE', 'WHEN', 'THEN', 'ELSE', 'END',
    'JOIN', 'INNER', 'LEFT', 'RIGHT', 'FULL', 'OUTER', 'ON', 'UNION', 'INTERSECT', 'EXCEPT',
    'SCHEMAS', 'TABLES', 'COLUMNS', 'CATALOGS',
]

# History
HISTORY_DIR_NAME = '.tdsql'
HISTORY_FILE_NAME = 'history'
HISTORY_LIMIT = 1000

LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']

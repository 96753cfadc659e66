from track.core.exceptions import (
    ConfigurationError as ConfigurationError,
    TrackError as TrackError,
)
from track.core.types import (
    Issue as Issue,
    Project as Project,
    Tag as Tag,
)

# ========= Copyright 2025-2026 @ tgpic Authors. All Rights Reserved. =========
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ========= Copyright 2025-2026 @ tgpic Authors. All Rights Reserved. =========

from tgpic.server.component import code


class UserException(Exception):
    """Rejected request; never retried by clients."""

    def __init__(self, code: int, description: str, status_code: int = 400):
        super().__init__(description)
        self.code = code
        self.description = description
        self.status_code = status_code


class NotFoundException(UserException):
    def __init__(self, description: str):
        super().__init__(code.not_found, description, status_code=404)


class RelayException(Exception):
    """The relay service failed or answered with something unusable."""

    def __init__(self, description: str, details: str | None = None, status_code: int = 502):
        super().__init__(description)
        self.description = description
        self.details = details
        self.status_code = status_code


class RateLimitedException(RelayException):
    """The relay asked us to slow down for ``retry_after`` seconds."""

    def __init__(self, retry_after: int, details: str | None = None):
        super().__init__(f"Too Many Requests: retry after {retry_after}", details=details, status_code=429)
        self.retry_after = retry_after

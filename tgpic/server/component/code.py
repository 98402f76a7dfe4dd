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

"""Error codes returned in the ``code`` field of error payloads."""

success = 0
error = 1
not_found = 4
form_error = 100
file_empty = 101
file_too_large = 102
invalid_folder = 103
invalid_expire = 104
config_error = 200
relay_error = 300
rate_limited = 301
catalog_error = 400
dedup_failed = 500

# Copyright 2025 Google LLC
#
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
# ==============================================================================

MIN_RATING = 1
MAX_RATING = 5
MAX_COMMENT_LENGTH = 2000
MAX_FLAG_REASON_LENGTH = 500
MAX_ANNOUNCEMENT_TITLE_LENGTH = 200
MAX_ANNOUNCEMENT_MESSAGE_LENGTH = 4000

# Provider search
KM_PER_DEGREE = 111.32
EARTH_RADIUS_KM = 6371.0
DEFAULT_SEARCH_RADIUS_KM = 10.0
MAX_NEARBY_RESULTS = 20

# Firebase Cloud Messaging accepts at most 500 tokens per multicast call.
FCM_MAX_MULTICAST_TOKENS = 500
FCM_CLICK_ACTION = "FLUTTER_NOTIFICATION_CLICK"

"""
수주 계층 구조 변환.

플랫한 수주 목록(parent_order_id 참조)을 부모-자식 트리로 바꾼다.
- 신규 계약이 부모, 변경 계약이 children
- 자식이 있는 루트는 자기 자신의 복사본(children 없음)을 첫 번째 자식으로 가진다
- 부모를 찾지 못한 행(고아)은 버리지 않고 루트로 둔다
- children이 비면 키 자체를 제거 (있는지 여부만으로 판단 가능)
"""
import logging
import math

from constants import CONTRACT_TYPE

logger = logging.getLogger(__name__)

PARENT_KEY = 'parent_order_id'
AMOUNT_KEY = 'contract_amount'


def _creates_cycle(order_id, parent_id, parent_of):
    """parent_id부터 부모를 따라 올라가다 order_id로 돌아오면 순환"""
    seen = set()
    current = parent_id
    while current is not None and current not in seen:
        if current == order_id:
            return True
        seen.add(current)
        current = parent_of.get(current)
    return False


def materialize(flat_orders, parent_key=PARENT_KEY):
    """플랫 목록 → 계층 목록 (입력은 변경하지 않음)"""
    order_map = {}
    records = []
    for order in flat_orders or []:
        order_id = order.get('id')
        if order_id in order_map:
            logger.warning(f'[order_tree] 중복 id 무시: {order_id}')
            continue
        node = dict(order)
        node['children'] = []
        order_map[order_id] = node
        records.append(node)

    parent_of = {node['id']: node.get(parent_key) for node in records}

    roots = []
    for node in records:
        parent_id = node.get(parent_key)
        parent = order_map.get(parent_id) if parent_id else None
        if parent is None:
            roots.append(node)
        elif _creates_cycle(node['id'], parent_id, parent_of):
            logger.warning(f'[order_tree] 순환 참조를 루트로 처리: {node["id"]}')
            roots.append(node)
        else:
            parent['children'].append(node)

    # 자식이 있는 루트는 자기 자신을 첫 번째 자식으로
    for root in roots:
        if root['children']:
            self_copy = dict(root)
            del self_copy['children']
            root['children'].insert(0, self_copy)

    _strip_empty_children(roots)
    return roots


def _strip_empty_children(nodes):
    for node in nodes:
        children = node.get('children')
        if children is None:
            continue
        if not children:
            del node['children']
        else:
            _strip_empty_children(children)


def is_self_copy(node, child):
    return 'children' not in child and child.get('id') == node.get('id')


def real_children(node):
    """첫 번째 자기 복사본을 뺀 실제 자식 목록"""
    children = node.get('children') or []
    if children and is_self_copy(node, children[0]):
        return children[1:]
    return list(children)


def flatten(tree, parent_key=PARENT_KEY):
    """계층 목록 → 플랫 목록 (자기 복사본 제외, parent 참조 유지)"""
    flat = []

    def walk(nodes):
        for node in nodes:
            row = dict(node)
            row.pop('children', None)
            flat.append(row)
            walk(real_children(node))

    walk(tree or [])
    return flat


def _to_number(value):
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return 0 if isinstance(value, float) and math.isnan(value) else value
    try:
        number = float(str(value).strip())
    except (TypeError, ValueError):
        return 0
    if math.isnan(number) or math.isinf(number):
        return 0
    return int(number) if number.is_integer() else number


def calculate_total_amount(order, amount_key=AMOUNT_KEY):
    """총 계약금액 (부모 + 실제 자식, 자기 복사본은 중복 합산하지 않음)"""
    total = _to_number(order.get(amount_key))
    for child in real_children(order):
        total += _to_number(child.get(amount_key))
    return total


def get_contract_type_label(order):
    """계약구분 라벨: 변경 / 신규 + 변경 (N) / 신규"""
    if order.get('contract_type') == 'change':
        return CONTRACT_TYPE['change']
    change_count = len(real_children(order))
    if change_count > 0:
        return f"{CONTRACT_TYPE['new']} + {CONTRACT_TYPE['change']} ({change_count})"
    return CONTRACT_TYPE['new']


def _normalize_attachment(file):
    if isinstance(file, str):
        return {'name': file, 'size': 0, 'path': file, 'uploadedAt': ''}
    return dict(file)


def _tagged_attachments(order):
    attachments = order.get('attachments')
    if not isinstance(attachments, list):
        return []
    contract_info = {
        'type': order.get('contract_type'),
        'name': order.get('contract_name'),
        'orderNumber': order.get('order_number'),
    }
    tagged = []
    for file in attachments:
        item = _normalize_attachment(file)
        item['contractInfo'] = dict(contract_info)
        tagged.append(item)
    return tagged


def get_all_attachments(order):
    """부모 + 실제 자식들의 첨부파일 (각 파일에 계약 정보 태그)"""
    attachments = _tagged_attachments(order)
    for child in real_children(order):
        attachments.extend(_tagged_attachments(child))
    return attachments


def summarize_tree(tree):
    """API 응답용: 각 루트에 총액과 계약구분 라벨 추가"""
    summary = []
    for node in tree:
        item = dict(node)
        item['total_amount'] = calculate_total_amount(node)
        item['contract_type_label'] = get_contract_type_label(node)
        summary.append(item)
    return summary

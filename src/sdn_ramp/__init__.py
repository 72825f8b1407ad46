"""
SDN Ramp Agent
로드밸런서 어플라이언스를 오버레이 네트워크 클러스터에 연결하는 램프 노드 에이전트

Features:
- IPIP 터널 재생성 및 도달성 검증
- 가상 스위치(OVS) 초기화 및 준비 상태 폴링
- 게이트웨이 주소 계산 및 OpenFlow 규칙 설치
- idempotent 재실행 지원
"""

__version__ = "1.0.0"
__author__ = "DevOps Team"
